"""
Prompt builder for schema generation and data extraction.

Two tasks, each parameterized by output shape (JSON object, JSON array
or CSV):

- schema generation: ask the model to propose fields/columns for a document
- extraction: ask the model to fill a given schema from the document
"""

from ...models import JsonType, OutputFormat

# =============================================================================
# Schema Generation Prompts
# =============================================================================

_SCHEMA_ROLE = "You are a Senior Data Architect who designs data extraction schemas for documents."

JSON_OBJECT_SCHEMA_PROMPT = f"""{_SCHEMA_ROLE}
Your goal is to understand WHY the user uploaded this document and WHAT data they want out of it.{{context}}

## Your Analysis Process:

1. **Document Purpose**:
   - Classify the document (invoice, receipt, contract, form, statement, medical record, report, etc.)
   - Work out the business need behind the upload and the problem the user is solving
   - Think about what people usually need from documents of this kind

2. **Data Points**:
   - List every data point that would be valuable to capture
   - Cover both explicit values and values that can be derived from the content
   - Keep downstream use in mind: reporting, analysis, automation

3. **Schema Design**:
   - Propose a comprehensive, nested schema covering all important information
   - Group related fields logically (e.g. customer, line items, totals, metadata) using `object` fields with children
   - For each field decide:
     * name: camelCase, descriptive, self-documenting
     * type: string, number, boolean, date, array or object
     * required: true if most documents of this kind would contain it
     * arrayItemType for `array` fields (string, number or boolean)
     * children for `object` fields
   - Include fields that are useful even when not visible on this copy (e.g. documentType)

4. **Quality Check**:
   - The schema must work for other documents of the same kind, not just this one
   - Prefer fields that enable filtering, sorting and grouping

Return a comprehensive nested schema that captures the important information in the document, designed around the user's likely intent."""

JSON_ARRAY_SCHEMA_PROMPT = f"""{_SCHEMA_ROLE}
Your goal is to find the REPEATING ITEMS in the document that should be extracted as a list of objects.{{context}}

## Your Analysis Process:

1. **Document Purpose**:
   - Classify the document and the business need behind the upload
   - Look for REPEATING PATTERNS: the same kind of item appearing several times

2. **Find the Repeating Pattern**:
   - Typical candidates: invoice line items, transactions, product listings, contacts, entries in a register, rows of a table
   - Decide what exactly ONE ITEM of the repetition is (one line item, one transaction, one product)

3. **Design the Item**:
   - Describe the fields of ONE item only:
     * name: camelCase, descriptive, self-documenting
     * type: string, number, boolean, date, array or object
     * required: true if most items contain it
     * arrayItemType for `array` fields, children for `object` fields
   - Include fields that identify or categorize each item (e.g. itemNumber, description, amount)
   - Document-level values (invoice number, statement date) may be repeated on every item, or left out

4. **Quality Check**:
   - Every item of the repetition should fit the same shape
   - Prefer fields that make items filterable, sortable and unique

**IMPORTANT**: Your schema describes the STRUCTURE OF A SINGLE ITEM. That shape will later be applied to every matching item found in the document, so do not describe the document as a whole."""

CSV_SCHEMA_PROMPT = f"""{_SCHEMA_ROLE}
Your goal is to find the REPEATING RECORDS in the document that should be exported as rows of a spreadsheet (CSV).{{context}}

## Your Analysis Process:

1. **Document Purpose**:
   - Classify the document and the business need behind the upload
   - Look for REPEATING PATTERNS: the same kind of record appearing several times

2. **Find the Repeating Pattern**:
   - Typical candidates: invoice line items, transactions, product listings, contacts, table rows
   - Decide what exactly ONE RECORD (one CSV row) is

3. **Design the Columns**:
   - Describe the columns of ONE record only:
     * name: a clear, human-readable column header
     * type: string, number, boolean or date
     * required: true if most records contain it
   - Include identifier columns (IDs, reference numbers) that make each row unique
   - Document-level values (invoice number, statement date) may be repeated on every row, or left out
   - Do NOT use nested structures: every value must fit in a single cell

4. **Quality Check**:
   - Columns should be practical for spreadsheet analysis, pivot tables and reports
   - Headers should be understandable by non-technical users

**IMPORTANT**: Your schema describes the COLUMNS OF A SINGLE RECORD. Those columns will later be filled for every matching record found in the document, so do not describe the document as a whole."""


def _context_section(filename: str | None, mime_type: str | None) -> str:
    """Document context hints; empty when nothing is known about the file."""
    if not filename and not mime_type:
        return ""

    lines = ["", "", "## Document Context"]
    if filename:
        lines.append(f'Document filename: "{filename}"')
    if mime_type:
        lines.append(f"Document type: {mime_type}")
    lines.extend(
        [
            "",
            "Use the filename and the document content to infer:",
            "- What kind of document this is",
            "- Why someone would upload it and what they want to extract",
            "- Which fields are common for this kind of document",
        ]
    )
    return "\n".join(lines)


def build_schema_generation_prompt(
    format: OutputFormat,
    filename: str | None = None,
    mime_type: str | None = None,
    json_type: JsonType | None = None,
) -> str:
    """
    Build the instructions for proposing a schema from a document.

    Args:
        format: Target output format.
        filename: Original filename, used as a hint about the document type.
        mime_type: Declared mime type of the upload.
        json_type: Object or array, for JSON only (defaults to object).

    Returns:
        The prompt text.
    """
    context = _context_section(filename, mime_type)

    if format == OutputFormat.CSV:
        template = CSV_SCHEMA_PROMPT
    elif json_type == JsonType.ARRAY:
        template = JSON_ARRAY_SCHEMA_PROMPT
    else:
        template = JSON_OBJECT_SCHEMA_PROMPT

    return template.format(context=context)


# =============================================================================
# Extraction Prompts
# =============================================================================

JSON_OBJECT_PARSE_PROMPT = (
    "Extract the structured data from the document(s) as a nested JSON object "
    "matching the provided schema."
)

JSON_ARRAY_PARSE_PROMPT = (
    "Extract ALL matching objects from the document(s) and return them as an array. "
    "Every object in the array must match the provided schema. Look for repeating "
    "patterns or multiple instances of similar items and extract each one as a "
    "separate array element."
)

CSV_PARSE_PROMPT = (
    "Extract the data from the document(s) as a flat array of records suitable for "
    "CSV export. Every record must match the provided column schema."
)


def build_parse_prompt(
    format: OutputFormat,
    custom_prompt: str | None = None,
    json_type: JsonType | None = None,
) -> str:
    """
    Build the extraction instructions.

    The shape instruction always comes first; user instructions are only
    ever appended after it.
    """
    if format == OutputFormat.CSV:
        base = CSV_PARSE_PROMPT
    elif json_type == JsonType.ARRAY:
        base = JSON_ARRAY_PARSE_PROMPT
    else:
        base = JSON_OBJECT_PARSE_PROMPT

    if custom_prompt and custom_prompt.strip():
        return f"{base}\n\nAdditional instructions: {custom_prompt.strip()}"
    return base
