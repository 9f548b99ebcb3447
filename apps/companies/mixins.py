from rest_framework.exceptions import NotFound

from apps.companies.services import CompanyNotFoundError, get_company_for_user


class CompanyScopedMixin:
    """
    Resolve the acting company for views of tenant-owned data.

    A company the user doesn't belong to is reported as not found.
    """

    def get_company(self, company_id):
        try:
            return get_company_for_user(company_id=company_id, user=self.request.user)
        except CompanyNotFoundError as e:
            raise NotFound(str(e))
