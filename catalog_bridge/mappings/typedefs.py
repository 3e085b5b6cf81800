"""Generic type definitions offered to the collection at start-up.

Types without a mapping builder (``Process``, ``DataFlow``) are still listed:
registering them marks them as known but unimplemented.
"""

from __future__ import annotations

from typing import List

from catalog_bridge.lib.types import (
    AttributeTypeDef,
    AttributeTypeDefCategory,
    TypeDef,
    TypeDefCategory,
    TypeDefGallery,
)

ENTITY = TypeDefCategory.ENTITY_DEF
RELATIONSHIP = TypeDefCategory.RELATIONSHIP_DEF
CLASSIFICATION = TypeDefCategory.CLASSIFICATION_DEF

STANDARD_TYPE_DEFS: List[TypeDef] = [
    TypeDef("a32316b8-dc8c-48c5-b12b-71c1b2a080bf", "Referenceable", ENTITY,
            properties=("qualifiedName",)),
    TypeDef("896d14c2-7522-4f6c-8519-757711943fe6", "Asset", ENTITY,
            properties=("name", "description", "pathName", "recordCount"),
            super_type="Referenceable"),
    TypeDef("5f5a5d5e-2b76-4c79-9f1e-3b4f2b7b0c01", "AssetType", ENTITY,
            properties=("name",), super_type="Referenceable"),
    TypeDef("3c5bbc8b-d795-42c4-8ec4-8bbb2f1a3c58", "DataField", ENTITY,
            properties=("name", "description", "dataType", "position", "length"),
            super_type="Referenceable"),
    TypeDef("6bc727dc-e855-4979-8736-78ac3cfcd32f", "DataClass", ENTITY,
            properties=("name", "description", "classCode", "dataType"),
            super_type="Referenceable"),
    TypeDef("0db3e6ec-f5ef-4d75-ae38-b7ee6fd6ec0a", "GlossaryTerm", ENTITY,
            properties=("displayName", "summary", "description", "abbreviation",
                        "examples", "usage", "status"),
            super_type="Referenceable"),
    TypeDef("e507485b-9b5a-44c9-8a28-6967f7ff3672", "GlossaryCategory", ENTITY,
            properties=("displayName", "description"), super_type="Referenceable"),
    TypeDef("ac406bf8-e53e-49f1-9088-2af28bbbd285", "Person", ENTITY,
            properties=("name", "fullName", "jobTitle"), super_type="Referenceable"),
    TypeDef("79296df8-645a-4ef7-a011-912d1cdcf75a", "ContactDetails", ENTITY,
            properties=("contactMethodType", "contactMethodValue"),
            super_type="Referenceable"),
    TypeDef("d8f33bd7-afa9-4a11-a8c7-07dcec83c050", "Process", ENTITY,
            properties=("name", "formula"), super_type="Asset"),

    TypeDef("e6670973-645f-441a-bec7-6f5570345b92", "SemanticAssignment", RELATIONSHIP,
            end_types=("Referenceable", "GlossaryTerm")),
    TypeDef("696a81f5-ac60-46c7-b9fd-6979a1e7ad27", "TermCategorization", RELATIONSHIP,
            end_types=("GlossaryCategory", "GlossaryTerm")),
    TypeDef("4df37335-7f0c-4ced-82df-3b2fd07be1bd", "DataClassAssignment", RELATIONSHIP,
            properties=("confidence", "valueFrequency"),
            end_types=("DataField", "DataClass")),
    TypeDef("6cb9af43-184e-4dfa-854a-1572bcf0fe75", "ContactThrough", RELATIONSHIP,
            end_types=("Person", "ContactDetails")),
    TypeDef("d2490c0c-06cc-458a-add2-33cf2f5dd724", "DataFlow", RELATIONSHIP,
            end_types=("Referenceable", "Referenceable")),

    TypeDef("742ddb7d-9a4a-4eb5-8ac2-1d69953bd2b6", "Confidentiality", CLASSIFICATION,
            properties=("level",), valid_entity_types=("Asset", "DataField")),
    TypeDef("b239d832-50bd-471b-b17a-15a335fc7f40", "PrimaryKey", CLASSIFICATION,
            valid_entity_types=("DataField",)),
]

STANDARD_ATTRIBUTE_TYPE_DEFS: List[AttributeTypeDef] = [
    AttributeTypeDef("b34a64b9-554a-42b1-8f8a-7d5c2339f9c4", "string", AttributeTypeDefCategory.PRIMITIVE),
    AttributeTypeDef("7fc49104-fd3a-46c8-b6bf-f16b6074cd35", "int", AttributeTypeDefCategory.PRIMITIVE),
    AttributeTypeDef("33a91510-92ee-4825-9f49-facd7a6f9db6", "long", AttributeTypeDefCategory.PRIMITIVE),
    AttributeTypeDef("3863f010-611c-41fe-aaae-5d4d427f863b", "boolean", AttributeTypeDefCategory.PRIMITIVE),
    AttributeTypeDef("1bef35ca-d4f9-48db-87c2-afce4649362d", "date", AttributeTypeDefCategory.PRIMITIVE),
    AttributeTypeDef("005c7c14-ac84-4136-beed-959401b041f8", "map<string,string>", AttributeTypeDefCategory.COLLECTION),
    AttributeTypeDef("35e4f70e-5a7a-4a4f-b0d5-8c6f1b2c7b1e", "TermStatus", AttributeTypeDefCategory.ENUM_DEF,
                     values=("DRAFT", "PROPOSED", "APPROVED", "ACTIVE", "DEPRECATED")),
    AttributeTypeDef("30e7d8cd-df01-46e8-9247-a24c5650910d", "ContactMethodType", AttributeTypeDefCategory.ENUM_DEF,
                     values=("Email", "Phone", "Chat", "Profile", "Account", "Other")),
    AttributeTypeDef("ecb48ca2-4d29-4de9-99a1-bc4db9816d68", "ConfidentialityLevel", AttributeTypeDefCategory.ENUM_DEF,
                     values=("Unclassified", "Internal", "Confidential", "Sensitive", "Restricted")),
]


def standard_gallery() -> TypeDefGallery:
    return TypeDefGallery(
        type_defs=list(STANDARD_TYPE_DEFS),
        attribute_type_defs=list(STANDARD_ATTRIBUTE_TYPE_DEFS),
    )
