"""Classification mappings.

A classification is present on a catalog object when its presence field is
set. Catalog releases without the field on some object type simply drop
that type from the classification (see MappingRegistry).
"""

from __future__ import annotations

from catalog_bridge.lib.mapping import ClassificationMapping, PropertyMapping
from catalog_bridge.lib.schema import SchemaCatalog
from catalog_bridge.lib.types import TypeDefCategory
from catalog_bridge.mappings.builders import register_builder


@register_builder(TypeDefCategory.CLASSIFICATION_DEF, "Confidentiality")
def confidentiality(schema: SchemaCatalog):
    return [
        ClassificationMapping(
            "Confidentiality",
            external_types=("data_file", "data_file_field"),
            presence_field="confidentiality_level",
            properties=(PropertyMapping("level", "confidentiality_level"),),
        )
    ]


@register_builder(TypeDefCategory.CLASSIFICATION_DEF, "PrimaryKey")
def primary_key(schema: SchemaCatalog):
    return [
        ClassificationMapping(
            "PrimaryKey",
            external_types=("data_file_field",),
            presence_field="key",
            presence_value="true",
        )
    ]
