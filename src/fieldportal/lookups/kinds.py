# src/fieldportal/lookups/kinds.py

from __future__ import annotations

from enum import StrEnum


class LookupKind(StrEnum):
    """
    Foreign-key categories resolved by the lookup cache.

    Each kind owns exactly one storage key, one task field and one endpoint setting.
    """

    INSTALLER = "installers"
    SALES_ORDER = "sales_orders"
    ADDRESS = "addresses"

    @property
    def storage_key(self) -> str:
        return _STORAGE_KEYS[self]

    @property
    def task_field(self) -> str:
        return _TASK_FIELDS[self]

    def endpoint(self, settings) -> str:
        return str(getattr(settings, _ENDPOINT_SETTINGS[self]))


_STORAGE_KEYS = {
    LookupKind.INSTALLER: "lookupInstallers",
    LookupKind.SALES_ORDER: "lookupSalesOrders",
    LookupKind.ADDRESS: "lookupAddresses",
}

_TASK_FIELDS = {
    LookupKind.INSTALLER: "installateur_id",
    LookupKind.SALES_ORDER: "sale_order_id",
    LookupKind.ADDRESS: "address_id",
}

_ENDPOINT_SETTINGS = {
    LookupKind.INSTALLER: "lookup_installers_endpoint",
    LookupKind.SALES_ORDER: "lookup_sales_orders_endpoint",
    LookupKind.ADDRESS: "lookup_addresses_endpoint",
}
