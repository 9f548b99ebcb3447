import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def money():
    return models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('companies', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Document',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('kind', models.CharField(choices=[('quotation', 'Quotation'), ('invoice', 'Invoice'), ('proforma', 'Proforma Invoice'), ('credit_note', 'Credit Note'), ('purchase_order', 'Purchase Order (LPO)')], db_index=True, max_length=20)),
                ('document_number', models.CharField(max_length=50)),
                ('is_provisional_number', models.BooleanField(default=False, help_text='Number was issued by the fallback path and needs review')),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('sent', 'Sent'), ('accepted', 'Accepted'), ('expired', 'Expired'), ('converted', 'Converted'), ('partial', 'Partially Paid'), ('paid', 'Paid'), ('overdue', 'Overdue'), ('applied', 'Applied'), ('approved', 'Approved'), ('received', 'Received'), ('cancelled', 'Cancelled')], db_index=True, default='draft', max_length=20)),
                ('issue_date', models.DateField()),
                ('due_date', models.DateField(blank=True, null=True)),
                ('valid_until', models.DateField(blank=True, null=True)),
                ('reference', models.CharField(blank=True, max_length=100)),
                ('notes', models.TextField(blank=True)),
                ('subtotal', money()),
                ('tax_amount', money()),
                ('total_amount', money()),
                ('paid_amount', money()),
                ('balance_due', money()),
                ('applied_amount', money()),
                ('balance', money()),
                ('idempotency_key', models.CharField(blank=True, max_length=100, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='documents', to='companies.company')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_documents', to=settings.AUTH_USER_MODEL)),
                ('customer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='documents', to='companies.customer')),
                ('related_invoice', models.ForeignKey(blank=True, help_text='Invoice a credit note was raised against', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='credit_notes', to='documents.document')),
                ('source_document', models.ForeignKey(blank=True, help_text='Quotation or proforma this document was converted from', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='conversions', to='documents.document')),
                ('supplier', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='documents', to='companies.supplier')),
            ],
            options={
                'db_table': 'documents',
                'ordering': ['-issue_date', '-created_at'],
                'indexes': [
                    models.Index(fields=['company', 'kind', 'status'], name='documents_company_kind_idx'),
                    models.Index(fields=['company', 'issue_date'], name='documents_company_date_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('company', 'document_number'), name='uniq_document_number_per_company'),
                    models.UniqueConstraint(condition=models.Q(('idempotency_key__isnull', False)), fields=('company', 'idempotency_key'), name='uniq_document_idempotency_key'),
                    models.CheckConstraint(condition=models.Q(('paid_amount__gte', 0), ('balance_due__gte', 0)), name='document_invoice_balance_non_negative'),
                    models.CheckConstraint(condition=models.Q(('applied_amount__gte', 0), ('balance__gte', 0)), name='document_credit_balance_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DocumentLine',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('position', models.PositiveIntegerField()),
                ('description', models.CharField(blank=True, max_length=500)),
                ('quantity', models.DecimalField(decimal_places=4, max_digits=14)),
                ('unit_price', models.DecimalField(decimal_places=4, max_digits=14)),
                ('discount_percentage', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=5)),
                ('discount_amount', money()),
                ('tax_percentage', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=5)),
                ('tax_inclusive', models.BooleanField(default=False)),
                ('net_amount', money()),
                ('taxable_amount', money()),
                ('tax_amount', money()),
                ('line_total', money()),
                ('document', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lines', to='documents.document')),
            ],
            options={
                'db_table': 'document_lines',
                'ordering': ['position'],
                'constraints': [
                    models.UniqueConstraint(fields=('document', 'position'), name='uniq_document_line_position'),
                ],
            },
        ),
        migrations.CreateModel(
            name='NumberSequence',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('kind', models.CharField(max_length=20)),
                ('year', models.PositiveIntegerField()),
                ('last_value', models.PositiveIntegerField(default=0)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='number_sequences', to='companies.company')),
            ],
            options={
                'db_table': 'document_number_sequences',
                'constraints': [
                    models.UniqueConstraint(fields=('company', 'kind', 'year'), name='uniq_number_sequence'),
                ],
            },
        ),
    ]
