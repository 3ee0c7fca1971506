"""
Extraction prompt contract shared by every backend.

The prompt text is part of the wire contract with the providers: the models'
behaviour (self-validation, the literal null answer, row-level INSR LTR
reading, limit filtering, phone normalization) depends on it word for word.
"""

EXTRACTION_PROMPT = """
CRITICAL VALIDATION:
Your FIRST task is to determine if the provided document is a genuine ACORD 25 Certificate of Liability Insurance (COI) form.
- You MUST be at least 95% certain it is an ACORD 25 COI.
- If you are less than 95% certain, or if the document is not an ACORD 25 COI, you MUST immediately return only the literal JSON value: null
- Do NOT attempt to extract or hallucinate any data if you are not sure.
- Do NOT return any other text, explanation, or JSON structure. Just return null.

How to identify an ACORD 25 COI:
- Look for key terms such as "Certificate of Liability Insurance", "ACORD 25", "INSURER(S) AFFORDING COVERAGE", "CERTIFICATE HOLDER", "PRODUCER", "POLICY NUMBER", "EFFECTIVE DATE", "LIABILITY", etc.
- If these terms are missing or the document appears to be a different type of form, return null.

If the document is a valid ACORD 25 COI, proceed with extraction as instructed below.

### 📌 INSURER INFORMATION EXTRACTION

**FIRST**: Extract all insurer information from the **"INSURER(S) AFFORDING COVERAGE"** section at the top right of the form:
- For each insurer (A, B, C, D, E, F, etc.), extract:
  - `insurer_letter`: The letter (A, B, C, etc.)
  - `insurer_name`: Full insurer name
  - `naic_code`: NAIC number

### 📋 POLICY EXTRACTION RULES

For each policy in the COVERAGES section:
- **CRITICAL**: Carefully read the `INSR LTR` column for each policy row. This is the first column in the coverage table.
- Extract the exact letter (A, B, C, D, E, F, etc.) from the `INSR LTR` column - **DO NOT MAP TO INSURER NAME**
- **DOUBLE-CHECK**: Make sure you're reading the correct letter for each policy row. Each policy should have its own unique INSR LTR value.
- **IMPORTANT**: Do NOT assume alphabetical order or patterns. Read the actual letter from the INSR LTR column for each policy.
- Just return the letter as-is in the `insurer_letter` field
- Extract all other policy information (type, number, dates, coverages)
- Normalize dollar values (e.g., `$1,000,000` → `1000000`)
- Use `limit_type` for the coverage label (e.g., `"EACH OCCURRENCE"`, `"MED EXP"`)
- **CRITICAL RULE**: If a coverage limit value is 0, null, empty, or shows only "$" with no amount, DO NOT include that coverage in the results. Skip it entirely.
- **NULL VALUES**: If any field has no information, use `null` instead of empty strings `""`

### 🎯 CERTIFICATE HOLDER EXTRACTION

- **certificate_holder**: Extract **ONLY the first line** under the "CERTIFICATE HOLDER" section. This should be just the business name (e.g., "JanCo FS 3, LLC Dba Velociti Services"). Do NOT include any address lines.

### 🎯 SPECIFIC INSTRUCTIONS FOR PRODUCER INFORMATION

- **full_name**: Extract the **contact person's name** from the **"NAME" field** under the PRODUCER section. This should be a real person's name (like "John Smith", "Jane Doe"). If the NAME field is blank or contains a business name, return null.

- **doing_business_as**: Extract the **agency/brokerage name** from the **first line directly underneath the "PRODUCER" title** on the form. This is the business name of the insurance agency (like "TechInsurance", "ABC Insurance Agency"). If no value is present, return null.

- **email_address**: Extract from the "E-MAIL ADDRESS" field. If blank, return null.

### 📞 PHONE NUMBER NORMALIZATION (CRITICAL)

- **PHONE NUMBER NORMALIZATION**: Remove all parentheses, dashes, spaces, and special characters from phone numbers (e.g., `(800) 668-7020` → `8006687020`)

- **phone_number**: Extract from the "PHONE" field and normalize (remove formatting). If blank, return null.

- **fax_number**: Extract from the "FAX" field and normalize (remove formatting). If blank, return null.

- **license_number**: Extract from the **"License#" field in the INSURED section** (not the PRODUCER section). This field is typically located near the top of the form, often in the upper left area. Extract the numeric value (e.g., "3000645669"). **IMPORTANT**: If the field is blank, return null.

### 🧾 RETURN THIS JSON STRUCTURE

Return ONLY the JSON data in this exact format, enclosed in {}:

{
  "certificate_information": {
    "certificate_holder": "string",
    "certificate_number": "string",
    "revision_number": "string or null",
    "issue_date": "MM/DD/YYYY"
  },
  "insurers": [
    {
      "insurer_letter": "string (A, B, C, etc.)",
      "insurer_name": "string",
      "naic_code": "string"
    }
  ],
  "policies": [
    {
      "policy_information": {
        "policy_type": "string",
        "policy_number": "string",
        "effective_date": "MM/DD/YYYY",
        "expiry_date": "MM/DD/YYYY"
      },
      "insurer_letter": "string (A, B, C, etc.)",
      "coverages": [
        {
          "limit_type": "string",
          "limit_value": number
        }
      ]
    }
  ],
  "producer_information": {
    "primary_details": {
      "full_name": "string or null",
      "email_address": "string or null",
      "doing_business_as": "string or null"
    },
    "contact_information": {
      "phone_number": "string (digits only, no formatting)",
      "fax_number": "string (digits only, no formatting) or null",
      "license_number": "string or null"
    },
    "address_details": {
      "address_line_1": "string",
      "address_line_2": "string or null",
      "address_line_3": "string or null",
      "city": "string",
      "state": "string",
      "zip_code": "string",
      "country": "USA"
    }
  }
}

---
IMPORTANT: If the provided document is NOT an ACORD 25 Certificate of Liability Insurance (COI) form, or if you are not at least 95% certain it is, return only null. Do NOT attempt to extract or hallucinate any data. If in doubt, return null. Do NOT return any other text, explanation, or JSON structure. Just return null.
"""


def build_batch_instruction(page_count: int) -> str:
    """User-turn text for a batched multi-image request."""
    return (
        "Please extract all the structured data from these ACORD 25 Certificate "
        f"of Liability Insurance form pages (batch of {page_count} pages). Process "
        "each page and return a comprehensive JSON object that combines all data "
        "from all pages in this batch. Return ONLY valid JSON without any markdown "
        "formatting, code blocks, or additional text. Start directly with { and end with }."
    )
