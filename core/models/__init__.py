"""Core domain models."""

from core.models.pricing import (
    DiscountType, TaxMode,
    Discount, NoDiscount, PercentageDiscount, FixedDiscount,
    TaxPolicy, NoTax, ProductTax, TotalTax,
    discount_from_columns, discount_columns,
    tax_policy_from_columns, tax_policy_columns,
)
from core.models.workspace import (
    Workspace, WorkspaceUpdate, SubscriptionStatus, SubscriptionUpdate,
    ACTIVE_SUBSCRIPTION_STATUSES,
)
from core.models.business import Business, BusinessCreate, BusinessUpdate
from core.models.client import Client, ClientCreate, ClientUpdate
from core.models.catalog import CatalogItem, CatalogItemCreate, CatalogItemUpdate, QuantityUnit
from core.models.invoice_item import InvoiceItem, InvoiceItemCreate, InvoiceItemUpdate
from core.models.payment import (
    Payment, PaymentCreate, PaymentUpdate, PaymentSummary, PaymentListQuery, PaymentPage,
)
from core.models.invoice import (
    Invoice, InvoiceCreate, InvoiceUpdate, InvoiceSummary, InvoiceDetail,
    InvoiceListQuery, InvoiceStats, InvoicePage, SendInvoiceRequest,
)
from core.models.dashboard import DashboardStats, MonthlyRevenue
from core.lifecycle import InvoiceStatus

__all__ = [
    # Pricing
    "DiscountType", "TaxMode",
    "Discount", "NoDiscount", "PercentageDiscount", "FixedDiscount",
    "TaxPolicy", "NoTax", "ProductTax", "TotalTax",
    "discount_from_columns", "discount_columns",
    "tax_policy_from_columns", "tax_policy_columns",
    # Workspace
    "Workspace", "WorkspaceUpdate", "SubscriptionStatus", "SubscriptionUpdate",
    "ACTIVE_SUBSCRIPTION_STATUSES",
    # Business
    "Business", "BusinessCreate", "BusinessUpdate",
    # Client
    "Client", "ClientCreate", "ClientUpdate",
    # Catalog
    "CatalogItem", "CatalogItemCreate", "CatalogItemUpdate", "QuantityUnit",
    # InvoiceItem
    "InvoiceItem", "InvoiceItemCreate", "InvoiceItemUpdate",
    # Payment
    "Payment", "PaymentCreate", "PaymentUpdate", "PaymentSummary", "PaymentListQuery", "PaymentPage",
    # Invoice
    "Invoice", "InvoiceCreate", "InvoiceUpdate", "InvoiceSummary", "InvoiceDetail",
    "InvoiceListQuery", "InvoiceStats", "InvoicePage", "SendInvoiceRequest", "InvoiceStatus",
    # Dashboard
    "DashboardStats", "MonthlyRevenue",
]
