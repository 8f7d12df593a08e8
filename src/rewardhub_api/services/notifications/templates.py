"""Notification templates for claim events."""

from __future__ import annotations

import html
from dataclasses import dataclass


@dataclass
class RenderedTemplate:
    subject: str
    text_body: str
    html_body: str


def render_reward_claimed(
    *,
    reward_title: str,
    contact_name: str | None,
    new_balance: int | None,
    brand_name: str,
) -> RenderedTemplate:
    """Render the confirmation sent after a successful claim."""

    greeting = f"Hi {contact_name}," if contact_name else "Hi there,"
    subject = f"You claimed {reward_title}"

    text_lines = [
        greeting,
        "",
        f'Congratulations! You have successfully claimed "{reward_title}".',
    ]
    if new_balance is not None:
        text_lines.append(f"Your remaining balance is {new_balance:,} points.")
    text_lines.extend(
        [
            "",
            "You can review every reward you have claimed in your reward history.",
            "",
            "Thanks,",
            f"The {brand_name} Team",
        ]
    )
    text_body = "\n".join(text_lines)

    safe_title = html.escape(reward_title)
    safe_greeting = html.escape(greeting)
    balance_html = ""
    if new_balance is not None:
        balance_html = f"<p>Your remaining balance is <strong>{new_balance:,}</strong> points.</p>"

    html_body = f"""
<html>
  <body>
    <p>{safe_greeting}</p>
    <p>Congratulations! You have successfully claimed <strong>{safe_title}</strong>.</p>
    {balance_html}
    <p>You can review every reward you have claimed in your reward history.</p>
    <p>Thanks,<br/>The {html.escape(brand_name)} Team</p>
  </body>
</html>
""".strip()

    return RenderedTemplate(subject=subject, text_body=text_body, html_body=html_body)
