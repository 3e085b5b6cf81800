"""Tests for the error hierarchy."""

import pytest

from catalog_bridge.lib.errors import (
    BridgeError,
    CatalogTransportError,
    EntityNotKnownError,
    FunctionNotSupportedError,
    InvalidEntityFromStoreError,
    RepositoryError,
)


class TestBridgeError:
    """Tests for message formatting and context."""

    def test_plain_message(self):
        assert str(BridgeError("Something failed")) == "Something failed"

    def test_formatted_message(self):
        error = EntityNotKnownError(
            "No entity with this guid",
            operation="getEntityDetail",
            type_name="Asset",
            identifier="9-9-9",
            suggestion="Check the guid",
        )
        message = str(error)
        assert message.startswith("[getEntityDetail:Asset]\nNo entity with this guid")
        assert "identifier: 9-9-9" in message
        assert "Suggestion: Check the guid" in message

    def test_with_context_fills_unset_fields(self):
        error = FunctionNotSupportedError("Unsupported regex", type_name="Asset", property_name="name")
        returned = error.with_context(operation="findEntitiesByProperty", type_name="GlossaryTerm")
        assert returned is error
        assert error.operation == "findEntitiesByProperty"
        assert error.type_name == "Asset"
        assert str(error).startswith("[findEntitiesByProperty:Asset]")

    def test_to_dict(self):
        error = EntityNotKnownError("Missing", identifier="1-2-3", details={"reason": "deleted"})
        assert error.to_dict() == {
            "error_type": "EntityNotKnownError",
            "message": "Missing",
            "operation": None,
            "type_name": None,
            "identifier": "1-2-3",
            "property_name": None,
            "details": {"reason": "deleted"},
            "suggestion": None,
        }

    def test_taxonomy(self):
        assert issubclass(InvalidEntityFromStoreError, RepositoryError)
        assert issubclass(CatalogTransportError, RepositoryError)
        assert issubclass(RepositoryError, BridgeError)


class TestRepositoryErrors:
    """Tests for errors wrapping catalog failures."""

    def test_cause_recorded(self):
        cause = ConnectionError("refused")
        error = RepositoryError("Catalog request failed", cause=cause)
        assert error.cause is cause
        assert error.details == {"cause": "refused", "cause_type": "ConnectionError"}

    def test_transport_details(self):
        error = CatalogTransportError(
            "Catalog returned HTTP 503", status_code=503, url="https://catalog/igc-rest/v1/search"
        )
        assert error.status_code == 503
        assert error.details["status_code"] == 503
        assert error.details["url"] == "https://catalog/igc-rest/v1/search"

    def test_raised_as_bridge_error(self):
        with pytest.raises(BridgeError, match="HTTP 500"):
            raise CatalogTransportError("Catalog returned HTTP 500", status_code=500)
