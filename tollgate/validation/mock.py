"""Recording validator for tests and local development."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from .errors import InvocationError

if typ.TYPE_CHECKING:
    from .models import ValidationRequest
    from .protocol import DispatchCredentials


@dc.dataclass(frozen=True, slots=True)
class Submission:
    """One request the mock accepted."""

    invocation_id: str
    request: ValidationRequest
    credentials: DispatchCredentials


class MockValidationInvoker:
    """Accept every request and remember it.

    Parameters
    ----------
    failures
        Number of leading calls that raise :class:`InvocationError` before
        the mock starts accepting requests. Useful for exercising retries.

    Examples
    --------
    >>> invoker = MockValidationInvoker()
    >>> await invoker.invoke(request, credentials=credentials)
    'mock-1'
    >>> len(invoker.submissions)
    1

    """

    def __init__(self, *, failures: int = 0) -> None:
        """Start with no submissions."""
        self._remaining_failures = failures
        self.calls = 0
        self.submissions: list[Submission] = []

    async def invoke(
        self,
        request: ValidationRequest,
        *,
        credentials: DispatchCredentials,
    ) -> str:
        """Record ``request`` or fail while the failure budget lasts."""
        self.calls += 1
        if self._remaining_failures > 0:
            self._remaining_failures -= 1
            msg = "mock validator refused the request"
            raise InvocationError(msg, status_code=503)
        invocation_id = f"mock-{len(self.submissions) + 1}"
        self.submissions.append(
            Submission(
                invocation_id=invocation_id, request=request, credentials=credentials
            )
        )
        return invocation_id
