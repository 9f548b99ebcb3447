import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('companies', '0001_initial'),
        ('documents', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('payment_number', models.CharField(max_length=50)),
                ('payment_date', models.DateField()),
                ('amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('applied_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('method', models.CharField(choices=[('cash', 'Cash'), ('cheque', 'Cheque'), ('bank_transfer', 'Bank Transfer'), ('mobile_money', 'Mobile Money'), ('credit_card', 'Credit Card'), ('other', 'Other')], default='bank_transfer', max_length=20)),
                ('reference', models.CharField(blank=True, max_length=100)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payments', to='companies.company')),
                ('customer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='payments', to='companies.customer')),
                ('recorded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='recorded_payments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'payments',
                'ordering': ['-payment_date', '-created_at'],
                'indexes': [models.Index(fields=['company', 'payment_date'], name='payments_company_date_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('company', 'payment_number'), name='uniq_payment_number_per_company'),
                    models.CheckConstraint(condition=models.Q(('amount', 0), _negated=True), name='payment_amount_nonzero'),
                    models.CheckConstraint(condition=models.Q(('applied_amount__gte', 0)), name='payment_applied_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Allocation',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('source_kind', models.CharField(choices=[('payment', 'Payment'), ('credit_note', 'Credit Note')], max_length=20)),
                ('allocated_amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('allocated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='allocations', to=settings.AUTH_USER_MODEL)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='allocations', to='companies.company')),
                ('credit_note', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='credit_allocations', to='documents.document')),
                ('invoice', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='allocations', to='documents.document')),
                ('payment', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='allocations', to='payments.payment')),
            ],
            options={
                'db_table': 'allocations',
                'ordering': ['created_at'],
                'indexes': [models.Index(fields=['company', 'invoice'], name='allocations_invoice_idx')],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('payment__isnull', False)), fields=('payment', 'invoice'), name='uniq_payment_allocation'),
                    models.UniqueConstraint(condition=models.Q(('credit_note__isnull', False)), fields=('credit_note', 'invoice'), name='uniq_credit_note_allocation'),
                    models.CheckConstraint(condition=models.Q(models.Q(('credit_note__isnull', True), ('payment__isnull', False), ('source_kind', 'payment')), models.Q(('credit_note__isnull', False), ('payment__isnull', True), ('source_kind', 'credit_note')), _connector='OR'), name='allocation_single_source'),
                    models.CheckConstraint(condition=models.Q(('allocated_amount__gt', 0)), name='allocation_amount_positive'),
                ],
            },
        ),
    ]
