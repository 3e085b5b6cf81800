"""In-memory catalog used by the unit tests.

Implements the CatalogTransport protocol over a dict of raw catalog objects,
evaluating search conditions locally and paging like the REST API does.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Tuple

from catalog_bridge.lib.search import CatalogObject, CatalogQuery, SearchPage

# 2020-01-01, 2020-02-01, 2021-01-01, 2021-02-01 in epoch milliseconds
JAN_2020 = 1577836800000
FEB_2020 = 1580515200000
JAN_2021 = 1609459200000
FEB_2021 = 1612137600000


def ref(obj: Dict[str, Any]) -> Dict[str, Any]:
    return {"_id": obj["_id"], "_type": obj["_type"], "_name": obj.get("_name")}


class InMemoryCatalog:
    """Catalog fake recording every call made to it."""

    def __init__(self) -> None:
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.queries: List[CatalogQuery] = []
        self.fetches: List[str] = []
        self.updates: List[Tuple[str, Dict[str, Any]]] = []
        self.page_requests = 0
        self._pending: Dict[str, Tuple[List[Dict[str, Any]], int, int]] = {}

    def add(self, object_type: str, object_id: str, name: Optional[str] = None, **fields: Any) -> Dict[str, Any]:
        obj = {"_id": object_id, "_type": object_type, "_name": name, **fields}
        if name is not None:
            obj["name"] = name
        self.objects[object_id] = obj
        return obj

    def link(self, holder: Dict[str, Any], field: str, *targets: Dict[str, Any]) -> None:
        holder.setdefault(field, []).extend(ref(t) for t in targets)

    # CatalogTransport

    def get_object(self, object_id: str) -> Optional[CatalogObject]:
        self.fetches.append(object_id)
        data = self.objects.get(object_id)
        return CatalogObject.from_dict(copy.deepcopy(data)) if data else None

    def search(self, query: CatalogQuery) -> SearchPage:
        self.queries.append(query)
        matches = [
            obj for obj in self.objects.values()
            if obj["_type"] in query.types and query.conditions.matches(obj)
        ]
        if query.sort is not None:
            key = query.sort.property
            matches.sort(key=lambda o: (o.get(key) is None, o.get(key) or 0), reverse=not query.sort.ascending)
        return self._page(matches, query.begin, query.page_size)

    def next_page(self, page: SearchPage) -> SearchPage:
        self.page_requests += 1
        if not page.has_more or page.next_url not in self._pending:
            return SearchPage(begin=page.begin + len(page.items), page_size=page.page_size)
        matches, begin, page_size = self._pending.pop(page.next_url)
        return self._page(matches, begin, page_size)

    def update_object(self, object_id: str, fields: Dict[str, Any]) -> None:
        self.updates.append((object_id, copy.deepcopy(fields)))
        obj = self.objects[object_id]
        for name, value in fields.items():
            obj[name] = self._as_reference(value)

    # helpers

    def _as_reference(self, value: Any) -> Any:
        if isinstance(value, list):
            return [self._as_reference(v) for v in value]
        if isinstance(value, str) and value in self.objects:
            return ref(self.objects[value])
        return value

    def _page(self, matches: List[Dict[str, Any]], begin: int, page_size: int) -> SearchPage:
        end = begin + page_size
        items = [CatalogObject.from_dict(copy.deepcopy(o)) for o in matches[begin:end]]
        next_url = None
        if end < len(matches):
            next_url = f"search?begin={end}&token={len(self._pending)}"
            self._pending[next_url] = (matches, end, page_size)
        return SearchPage(
            items=items,
            total=len(matches),
            begin=begin,
            page_size=page_size,
            has_more=next_url is not None,
            next_url=next_url,
        )


def build_sample_catalog() -> InMemoryCatalog:
    """A small governance catalog: files, fields, terms, a data class and users."""
    catalog = InMemoryCatalog()
    audit = dict(created_by="etl", created_on=JAN_2020, modified_by="steward", modified_on=JAN_2021)

    accounts = catalog.add(
        "data_file", "1-2-3", name="customer_accounts.csv",
        short_description="Customer accounts", long_description="Daily extract of active customers",
        path="/landing/crm/customer_accounts.csv", record_count=1200,
        confidentiality_level="Confidential", **audit,
    )
    catalog.add(
        "data_file", "4-5-6", name="orders.parquet",
        short_description="Order history", path="/landing/shop/orders.parquet", record_count=88000,
        created_by="etl", created_on=FEB_2020, modified_by="etl", modified_on=FEB_2021,
    )
    customer_id = catalog.add(
        "data_file_field", "f-1", name="customer_id", short_description="Customer key",
        data_type="string", position=1, length=12, key=True,
        confidentiality_level="Internal", data_file=ref(accounts), **audit,
    )
    email = catalog.add(
        "data_file_field", "f-2", name="email", data_type="string", position=2, key=False,
        data_file=ref(accounts), **audit,
    )
    catalog.link(accounts, "data_file_fields", customer_id, email)

    data_class = catalog.add(
        "data_class", "dc-1", name="Customer Number", short_description="Customer identifiers",
        class_code="CUST_NO", data_type_filter="string", **audit,
    )
    detected = catalog.add(
        "classification", "c-1", name=None,
        classifies_asset=ref(customer_id), data_class=ref(data_class),
        confidence=92, value_frequency=15, **audit,
    )
    catalog.link(customer_id, "detected_classifications", detected)
    catalog.link(data_class, "classifications", detected)

    sales = catalog.add("category", "cat-1", name="Sales", short_description="Sales terms", **audit)
    customer = catalog.add(
        "term", "t-1", name="Customer", short_description="A party that buys goods",
        long_description="Any person or organisation with an account", status="ACTIVE",
        parent_category=ref(sales), **audit,
    )
    catalog.add("term", "t-2", name="Order", short_description="A purchase request", status="DRAFT", **audit)
    catalog.link(sales, "terms", customer)
    catalog.link(customer, "assigned_assets", accounts, customer_id)
    catalog.link(accounts, "assigned_to_terms", customer)
    catalog.link(customer_id, "assigned_to_terms", customer)

    catalog.add(
        "user", "u-1", name="jdoe", principal_id="jdoe", full_name="Jane Doe",
        job_title="Data Steward", email_address="jane.doe@example.com", **audit,
    )
    catalog.add("user", "u-2", name="bsmith", principal_id="bsmith", full_name="Bob Smith", **audit)

    catalog.add("main_object", "m-1", name="customer placeholder", short_description="customer")
    return catalog
