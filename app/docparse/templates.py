"""Built-in schema templates offered to the editor."""

from .exceptions import SchemaValidationError
from .models import (
    ArrayItemType,
    ColumnType,
    CsvColumn,
    CsvSchemaDefinition,
    FieldType,
    JsonSchemaDefinition,
    JsonType,
    SchemaField,
)

JSON_TEMPLATES: dict[str, list[SchemaField]] = {
    "custom": [],
    "invoice": [
        SchemaField(name="invoiceNumber", type=FieldType.STRING),
        SchemaField(name="date", type=FieldType.DATE),
        SchemaField(name="vendor", type=FieldType.STRING),
        SchemaField(name="total", type=FieldType.NUMBER),
        SchemaField(name="items", type=FieldType.ARRAY, array_item_type=ArrayItemType.STRING),
    ],
    "bankStatement": [
        SchemaField(name="accountNumber", type=FieldType.STRING),
        SchemaField(name="accountHolder", type=FieldType.STRING),
        SchemaField(name="statementDate", type=FieldType.DATE),
        SchemaField(name="openingBalance", type=FieldType.NUMBER),
        SchemaField(name="closingBalance", type=FieldType.NUMBER),
        SchemaField(
            name="transactions", type=FieldType.ARRAY, array_item_type=ArrayItemType.STRING
        ),
    ],
}

CSV_TEMPLATES: dict[str, list[CsvColumn]] = {
    "custom": [],
    "transactionList": [
        CsvColumn(name="date", type=ColumnType.DATE),
        CsvColumn(name="description", type=ColumnType.STRING),
        CsvColumn(name="amount", type=ColumnType.NUMBER),
        CsvColumn(name="category", type=ColumnType.STRING, required=False),
        CsvColumn(name="reference", type=ColumnType.STRING, required=False),
    ],
    "productCatalog": [
        CsvColumn(name="sku", type=ColumnType.STRING),
        CsvColumn(name="name", type=ColumnType.STRING),
        CsvColumn(name="price", type=ColumnType.NUMBER),
        CsvColumn(name="quantity", type=ColumnType.NUMBER),
        CsvColumn(name="inStock", type=ColumnType.BOOLEAN),
    ],
    "contactList": [
        CsvColumn(name="name", type=ColumnType.STRING),
        CsvColumn(name="email", type=ColumnType.STRING),
        CsvColumn(name="phone", type=ColumnType.STRING, required=False),
        CsvColumn(name="company", type=ColumnType.STRING, required=False),
        CsvColumn(name="address", type=ColumnType.STRING, required=False),
    ],
}


def json_template(name: str, json_type: JsonType = JsonType.OBJECT) -> JsonSchemaDefinition:
    """Return a fresh JSON schema definition built from a template."""
    if name not in JSON_TEMPLATES:
        raise SchemaValidationError(f"Unknown JSON template: {name}")
    fields = [field.model_copy(deep=True) for field in JSON_TEMPLATES[name]]
    return JsonSchemaDefinition(json_type=json_type, fields=fields)


def csv_template(name: str) -> CsvSchemaDefinition:
    """Return a fresh CSV schema definition built from a template."""
    if name not in CSV_TEMPLATES:
        raise SchemaValidationError(f"Unknown CSV template: {name}")
    columns = [column.model_copy(deep=True) for column in CSV_TEMPLATES[name]]
    return CsvSchemaDefinition(columns=columns)
