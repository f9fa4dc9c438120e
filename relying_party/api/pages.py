"""Inline HTML for the relying party's pages.

Browser-driving tests locate pages by their <title>, so the titles are part
of the fixture's contract.  Error pages carry no detail on purpose.
"""

from __future__ import annotations

import html

_PAGE = """\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{title}</title>
</head>
<body>
{body}
</body>
</html>
"""

LOGIN_TITLE = "RP: Login"
AUTH_ERROR_TITLE = "RP: Error"
GOT_ERROR_TITLE = "RP: Got error"
INVALID_TOKEN_TITLE = "RP: Invalid token"
CONFIRMED_TITLE = "RP: Confirmed"


def _page(title: str, body: str = "") -> str:
    return _PAGE.format(title=html.escape(title), body=body)


def login_page() -> str:
    return _page(
        LOGIN_TITLE,
        '  <form method="post" action="/auth">\n'
        '    <input name="email" type="email">\n'
        "  </form>",
    )


def auth_error_page() -> str:
    return _page(AUTH_ERROR_TITLE)


def got_error_page() -> str:
    return _page(GOT_ERROR_TITLE)


def invalid_token_page() -> str:
    return _page(INVALID_TOKEN_TITLE)


def confirmed_page(identity: str) -> str:
    return _page(CONFIRMED_TITLE, f"  <p>{html.escape(identity)}</p>")
