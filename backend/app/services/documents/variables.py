"""
Variable Resolver

Builds the closed set of template variables from a loaded case. Every key is
always present; anything that cannot be resolved becomes "".
"""
from typing import Dict

from ...models.domain import CaseBundle
from .formatting import format_amount, format_date_in_words, parse_amount

VARIABLE_KEYS = (
    # Opposing party
    "nombre_ejecutado",
    "rut_ejecutado",
    "direccion_ejecutado",
    "solo_comuna_ejecutado",
    # Case
    "rol",
    "tribunal",
    "caratula",
    "cuantia",
    # Execution
    "fecha_palabras_diligencia",
    "hora_diligencia",
    "receptor_nombre",
    # Lawyer
    "abogado_nombre",
    "abogado_direccion",
    # Receipt
    "monto_ejecutado",
    "n_operacion",
)


def _text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def build_caption(bank_name: str, party_name: str) -> str:
    """"<bank> / <party>", or whichever side is known."""
    return " / ".join(part for part in (bank_name, party_name) if part)


def resolve_variables(bundle: CaseBundle) -> Dict[str, str]:
    """Substitution map for a case and its current sub-task."""
    case = bundle.case
    party = bundle.selected_party()
    meta = bundle.subtask_metadata

    party_name = _text(party.name) if party else ""
    bank_name = _text(bundle.bank.name) if bundle.bank else ""

    variables = {
        "nombre_ejecutado": party_name,
        "rut_ejecutado": _text(party.rut) if party else "",
        "direccion_ejecutado": _text(party.address) if party else "",
        "solo_comuna_ejecutado": _text(party.commune) if party else "",
        "rol": _text(case.docket_number),
        "tribunal": _text(bundle.court.name) if bundle.court else "",
        "caratula": _text(case.caption) or build_caption(bank_name, party_name),
        "cuantia": format_amount(case.claim_amount),
        "fecha_palabras_diligencia": format_date_in_words(meta.get("execution_date")),
        "hora_diligencia": _text(meta.get("execution_time")),
        "receptor_nombre": _text(bundle.office.name) if bundle.office else "",
        "abogado_nombre": _text(bundle.lawyer.name) if bundle.lawyer else "",
        "abogado_direccion": _text(bundle.lawyer.address) if bundle.lawyer else "",
        "monto_ejecutado": format_amount(parse_amount(meta.get("amount"))),
        "n_operacion": _text(meta.get("operation_number")),
    }
    return variables
