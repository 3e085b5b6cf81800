"""Relationship mappings."""

from __future__ import annotations

from catalog_bridge.lib.mapping import SELF, PropertyMapping, RelationshipEndpoint, RelationshipMapping
from catalog_bridge.lib.schema import SchemaCatalog
from catalog_bridge.lib.types import TypeDefCategory
from catalog_bridge.mappings.builders import register_builder
from catalog_bridge.mappings.entities import CONTACT_DETAILS_PREFIX

GLOSSARY_TERM_END = RelationshipEndpoint("GlossaryTerm", ("term",), link_field="assigned_assets")


@register_builder(TypeDefCategory.RELATIONSHIP_DEF, "SemanticAssignment")
def semantic_assignment(schema: SchemaCatalog):
    # Terms list their assigned assets of every kind; each mapping only
    # accepts its own catalog type at the asset end.
    return [
        RelationshipMapping(
            "SemanticAssignment",
            end_one=RelationshipEndpoint("Asset", ("data_file",), link_field="assigned_to_terms"),
            end_two=GLOSSARY_TERM_END,
        ),
        RelationshipMapping(
            "SemanticAssignment",
            end_one=RelationshipEndpoint("DataField", ("data_file_field",), link_field="assigned_to_terms"),
            end_two=GLOSSARY_TERM_END,
        ),
    ]


@register_builder(TypeDefCategory.RELATIONSHIP_DEF, "TermCategorization")
def term_categorization(schema: SchemaCatalog):
    return [
        RelationshipMapping(
            "TermCategorization",
            end_one=RelationshipEndpoint("GlossaryCategory", ("category",), link_field="terms"),
            end_two=RelationshipEndpoint("GlossaryTerm", ("term",), link_field="parent_category"),
        )
    ]


@register_builder(TypeDefCategory.RELATIONSHIP_DEF, "DataClassAssignment")
def data_class_assignment(schema: SchemaCatalog):
    """Each catalog classification object links one field to one data class."""
    return [
        RelationshipMapping(
            "DataClassAssignment",
            end_one=RelationshipEndpoint(
                "DataField",
                ("data_file_field",),
                link_field="classifies_asset",
                backlink="detected_classifications",
            ),
            end_two=RelationshipEndpoint(
                "DataClass",
                ("data_class",),
                link_field="data_class",
                backlink="classifications",
            ),
            self_contained=True,
            backing_type="classification",
            properties=(
                PropertyMapping("confidence", "confidence"),
                PropertyMapping("valueFrequency", "value_frequency"),
            ),
        )
    ]


@register_builder(TypeDefCategory.RELATIONSHIP_DEF, "ContactThrough")
def contact_through(schema: SchemaCatalog):
    return [
        RelationshipMapping(
            "ContactThrough",
            end_one=RelationshipEndpoint("Person", ("user",), link_field=SELF),
            end_two=RelationshipEndpoint(
                "ContactDetails", ("user",), link_field=SELF, prefix=CONTACT_DETAILS_PREFIX
            ),
        )
    ]
