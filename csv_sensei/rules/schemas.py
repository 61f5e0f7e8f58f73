from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

NUMBER = "number"
DATE = "date"
STRING = "string"

FIELD_TYPES = (NUMBER, DATE, STRING)


@dataclass(frozen=True)
class Schema:
    """Required/optional field names and the expected type of each field."""

    name: str
    required_fields: tuple[str, ...] = ()
    optional_fields: tuple[str, ...] = ()
    field_types: Mapping[str, str] = field(default_factory=dict)
    non_negative_fields: frozenset[str] = frozenset()
    # All-purpose schemas accept every header as-is and skip type checks
    accept_all: bool = False

    @property
    def expected_fields(self) -> tuple[str, ...]:
        return self.required_fields + self.optional_fields

    def type_of(self, field_name: str) -> str | None:
        return self.field_types.get(field_name)


def build_schema(
    name: str,
    required: Iterable[str] = (),
    optional: Iterable[str] = (),
    types: Mapping[str, str] | None = None,
    non_negative: Iterable[str] = (),
    accept_all: bool = False,
) -> Schema:
    field_types = dict(types or {})
    for fname, ftype in field_types.items():
        if ftype not in FIELD_TYPES:
            raise ValueError(f"unknown field type for {fname}: {ftype}")
    return Schema(
        name=name,
        required_fields=tuple(required),
        optional_fields=tuple(optional),
        field_types=field_types,
        non_negative_fields=frozenset(non_negative),
        accept_all=accept_all,
    )


DOCTOR_ROSTER_SCHEMA = build_schema(
    "Doctor_roster",
    required=[
        "Doctor_ID",
        "Doctor_Name",
        "Specialty",
        "License_No",
        "License_Expiry",
        "Shift_Start",
        "Shift_End",
    ],
    optional=[
        "Specialization",
        "Department",
        "Date",
        "Shift",
        "Start_Time",
        "End_Time",
        "Location",
        "Room_No",
        "On_Call",
        "Contact",
        "Email",
        "Max_Appointments",
        "Notes",
    ],
    types={
        "Doctor_ID": STRING,
        "Doctor_Name": STRING,
        "Specialty": STRING,
        "License_No": STRING,
        "License_Expiry": DATE,
        "Shift_Start": STRING,
        "Shift_End": STRING,
        "Specialization": STRING,
        "Department": STRING,
        "Date": DATE,
        "Shift": STRING,
        "Start_Time": STRING,
        "End_Time": STRING,
        "Location": STRING,
        "Room_No": STRING,
        "On_Call": STRING,
        "Contact": STRING,
        "Email": STRING,
        "Max_Appointments": NUMBER,
        "Notes": STRING,
    },
    non_negative=["Max_Appointments"],
)

OP_BILLING_SCHEMA = build_schema(
    "Opbilling",
    required=[
        "Bill_ID",
        "Bill_Date",
        "Patient_ID",
        "Patient_Name",
        "Doctor_ID",
        "Doctor_Name",
        "Department",
        "Service_Code",
        "Service_Description",
        "Quantity",
        "Unit_Price",
        "Total_Amount",
        "Payment_Status",
    ],
    optional=[
        "Visit_ID",
        "Visit_Date",
        "Age",
        "Procedure_Code",
        "Consent_Flag",
        "Payer_Type",
        "Payment_Method",
        "Discount_Amount",
        "Tax_Amount",
        "Net_Amount",
        "Currency",
        "Insurance_Provider",
        "Policy_Number",
        "Due_Date",
        "Paid_Date",
        "Notes",
    ],
    types={
        "Bill_ID": STRING,
        "Bill_Date": DATE,
        "Patient_ID": STRING,
        "Patient_Name": STRING,
        "Doctor_ID": STRING,
        "Doctor_Name": STRING,
        "Department": STRING,
        "Service_Code": STRING,
        "Service_Description": STRING,
        "Quantity": NUMBER,
        "Unit_Price": NUMBER,
        "Total_Amount": NUMBER,
        "Payment_Status": STRING,
        "Visit_ID": STRING,
        "Visit_Date": DATE,
        "Age": NUMBER,
        "Procedure_Code": STRING,
        "Consent_Flag": STRING,
        "Payer_Type": STRING,
        "Payment_Method": STRING,
        "Discount_Amount": NUMBER,
        "Tax_Amount": NUMBER,
        "Net_Amount": NUMBER,
        "Currency": STRING,
        "Insurance_Provider": STRING,
        "Policy_Number": STRING,
        "Due_Date": DATE,
        "Paid_Date": DATE,
        "Notes": STRING,
    },
    non_negative=["Quantity", "Unit_Price", "Total_Amount", "Age", "Discount_Amount", "Tax_Amount", "Net_Amount"],
)

GENERIC_SCHEMA = build_schema("Generic")

# Industry selector -> schema; anything unknown validates as "others"
SCHEMA_REQUIREMENTS: dict[str, Schema] = {
    "doctor_roster": DOCTOR_ROSTER_SCHEMA,
    "opbilling": OP_BILLING_SCHEMA,
    "others": GENERIC_SCHEMA,
}


def schema_for_industry(industry: str | None) -> Schema:
    return SCHEMA_REQUIREMENTS.get((industry or "").strip().lower(), GENERIC_SCHEMA)


def build_dynamic_schema(headers: Iterable[str], inferred_types: Mapping[str, str]) -> Schema:
    headers = list(headers)
    return build_schema(
        "Dynamic Schema",
        required=(),
        optional=headers,
        types={h: inferred_types.get(h, STRING) for h in headers},
    )


def build_all_purpose_schema() -> Schema:
    return build_schema("All-Purpose Schema", accept_all=True)
