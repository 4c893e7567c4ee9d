"""
============================================================================
SHARED EMAIL BASE: layout used by every outbound email
============================================================================

Single source of truth for email layout: header, footer, fonts.
All templates in email_templates.py wrap their body rows with
``wrap_in_email_layout`` so admin alerts, confirmations and status updates
look the same.

Design system:
- Navy header (#26547C) with white organisation name and title
- White body with 30px horizontal padding
- Footer with support contacts and copyright
- Arial/Helvetica font stack
============================================================================
"""

from datetime import datetime, timezone
from typing import Optional

from ..core.config import Settings, settings as default_settings


# =============================================================================
# Design Constants
# =============================================================================
HEADER_BG_COLOR = "#26547C"
ACCENT_COLOR = "#46B5A4"
EMERGENCY_COLOR = "#FF0000"
HIGH_PRIORITY_COLOR = "#FF6B5D"
FONT_STACK = "Arial, Helvetica, sans-serif"


def email_header(title: str, org_name: str) -> str:
    """
    Build the navy header with organisation name and title.

    Args:
        title: Large white text under the organisation name
        org_name: Organisation name shown on top

    Returns:
        HTML string for the header rows
    """
    return f"""                    <tr>
                        <td align="center" style="background-color: {HEADER_BG_COLOR}; padding: 24px 30px 6px 30px;">
                            <h1 style="margin: 0; font-family: {FONT_STACK}; font-size: 24px; font-weight: bold; color: #FFFFFF;">
                                {org_name}
                            </h1>
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="background-color: {HEADER_BG_COLOR}; padding: 0 30px 24px 30px;">
                            <p style="margin: 0; font-family: {FONT_STACK}; font-size: 16px; color: #FFFFFF; line-height: 1.4;">
                                {title}
                            </p>
                        </td>
                    </tr>"""


def email_divider() -> str:
    """Standard horizontal divider."""
    return """                    <tr>
                        <td style="padding: 20px 30px;">
                            <table width="100%" cellpadding="0" cellspacing="0" border="0">
                                <tr><td style="border-top: 1px solid #EEEEEE; font-size: 0; line-height: 0;" height="1">&nbsp;</td></tr>
                            </table>
                        </td>
                    </tr>"""


def email_footer(params: Settings) -> str:
    year = datetime.now(timezone.utc).year
    return f"""{email_divider()}
                    <tr>
                        <td align="center" style="padding: 0 30px;">
                            <p style="margin: 0; font-family: {FONT_STACK}; font-size: 12px; color: #999999; line-height: 1.4;">
                                Questions? Contact us at
                                <a href="mailto:{params.org_email}" style="color: #999999;">{params.org_email}</a>
                                &nbsp;|&nbsp; {params.org_phone}
                            </p>
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding: 6px 30px 24px 30px;">
                            <p style="margin: 0; font-family: {FONT_STACK}; font-size: 11px; color: #999999; line-height: 1.4;">
                                &copy; {year} {params.org_name}. All rights reserved.
                            </p>
                        </td>
                    </tr>"""


def wrap_in_email_layout(
    title: str,
    body_html: str,
    params: Optional[Settings] = None,
) -> str:
    """
    Wrap body rows in the full email layout (header + body + footer).

    Args:
        title: Header title text
        body_html: Inner HTML for the body section (table rows)
        params: Parameter snapshot supplying organisation contacts

    Returns:
        Complete HTML email string
    """
    params = params or default_settings
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title} - {params.org_name}</title>
</head>
<body style="margin: 0; padding: 0; background-color: #F5F5F7;">
    <table width="100%" cellpadding="0" cellspacing="0" border="0" style="background-color: #F5F5F7;">
        <tr>
            <td align="center" style="padding: 30px 20px;">
                <table width="600" cellpadding="0" cellspacing="0" border="0" style="max-width: 600px; width: 100%; background-color: #FFFFFF; border-radius: 8px; overflow: hidden;">

{email_header(title, params.org_name)}

{body_html}

{email_footer(params)}

                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""
