from salesflow.business.billing.models import Invoice
from salesflow.business.catalog.models import Product
from salesflow.business.revenue.models import Quotation, QuotationItem
from salesflow.crm.models import Customer, Employee, Lead, Opportunity, Ticket

__all__ = [
    "Customer",
    "Employee",
    "Invoice",
    "Lead",
    "Opportunity",
    "Product",
    "Quotation",
    "QuotationItem",
    "Ticket",
]
