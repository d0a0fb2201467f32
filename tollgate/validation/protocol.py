"""ValidationInvoker protocol for the external contract validator."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

if typ.TYPE_CHECKING:
    from tollgate.credentials.models import ScopedToken
    from tollgate.validation.models import ValidationRequest


@dc.dataclass(frozen=True, slots=True)
class DispatchCredentials:
    """Tokens issued for one dispatch.

    Attributes
    ----------
    contracts_token
        Token scoped to the contracts repository.
    producer_token
        Read token scoped to the producer repository, handed to the
        validator so it can check out the code under review.

    """

    contracts_token: ScopedToken
    producer_token: ScopedToken


@typ.runtime_checkable
class ValidationInvoker(typ.Protocol):
    """Start an asynchronous validation run.

    The validator is an opaque collaborator: it receives the contracts to
    check and a reference to the producer code, and later reports a severity
    with findings through the signed result callback. Tollgate does not
    reproduce its reasoning.

    Examples
    --------
    >>> from tollgate.validation import MockValidationInvoker, ValidationInvoker
    >>> isinstance(MockValidationInvoker(), ValidationInvoker)
    True

    """

    async def invoke(
        self,
        request: ValidationRequest,
        *,
        credentials: DispatchCredentials,
    ) -> str:
        """Submit ``request`` and return an invocation id.

        Raises
        ------
        InvocationError
            If the validator did not accept the request. Callers may retry.

        """
        ...
