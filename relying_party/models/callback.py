from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from relying_party.core.events import RPEvent

# Fields the verify handler looks at:
#   error, error_description: broker-reported failure
#   id_token: implicit flow
#   code: authorization code flow
CallbackParams = dict[str, str]


def merge_callback_params(
    form: Mapping[str, str], query: Mapping[str, str]
) -> CallbackParams:
    """Pick the parameter source for a /verify callback.

    The form body wins when it carries any field at all; otherwise the query
    string is used.  The two are never mixed.
    """
    source = form if len(form) > 0 else query
    return {str(k): str(v) for k, v in source.items()}


@dataclass(frozen=True, slots=True)
class VerifyResult:
    outcome: RPEvent
    params: CallbackParams = field(default_factory=dict)
    identity: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is RPEvent.VERIFIED
