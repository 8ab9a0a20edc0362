"""Credential builder for Hacienda IDP authentication.

The IDP expects usernames of the form ``{prefix}-{id_type}-{id_number}``,
e.g. ``cpj-02-3101234567`` for a company.
"""

import re
from typing import Dict, List, Union

from hacienda.core.exceptions import AuthError, AuthErrorCode
from hacienda.domain.models.auth import AuthCredentials, IdType

_ID_TYPE_PREFIX: Dict[IdType, str] = {
    IdType.PERSONA_FISICA: "cpf",
    IdType.PERSONA_JURIDICA: "cpj",
    IdType.DIMEX: "cpf",
    IdType.NITE: "cpf",
}

_ID_NUMBER_PATTERN = re.compile(r"^\d{9,12}$")


def build_username(id_type: Union[IdType, str], id_number: str) -> str:
    """Builds the IDP username.

    >>> build_username(IdType.PERSONA_JURIDICA, "3101234567")
    'cpj-02-3101234567'
    """
    id_type = IdType(id_type)
    return f"{_ID_TYPE_PREFIX[id_type]}-{id_type.value}-{id_number}"


def load_credentials(id_type: Union[IdType, str], id_number: str, password: str) -> AuthCredentials:
    """Validates raw credential fields and resolves them into AuthCredentials.

    Args:
        id_type: Identification type code ('01'-'04') or IdType.
        id_number: Cedula, 9 to 12 digits.
        password: IDP password.

    Raises:
        AuthError: INVALID_CREDENTIALS, listing every problem found.
    """
    problems: List[str] = []
    resolved_type = None
    try:
        resolved_type = IdType(str(id_type))
    except ValueError:
        problems.append(
            "Invalid identification type. Must be 01 (Fisica), 02 (Juridica), 03 (DIMEX), or 04 (NITE)."
        )

    number = str(id_number or "")
    if not number.isdigit():
        problems.append("Identification number must contain only digits.")
    elif not _ID_NUMBER_PATTERN.match(number):
        problems.append("Identification number must be between 9 and 12 digits.")

    if not password:
        problems.append("Password is required.")

    if problems:
        raise AuthError(AuthErrorCode.INVALID_CREDENTIALS, f"Invalid credentials: {'; '.join(problems)}")

    return AuthCredentials(username=build_username(resolved_type, number), password=password)
