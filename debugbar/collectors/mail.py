"""
Mail collector - messages handed to the mailer during the request.
"""

from __future__ import annotations

from typing import Any, Dict, List

from ..hooks import MailEvent
from .base import DataCollector


class MailCollector(DataCollector):

    name = "mails"

    def __init__(self):
        self._mails: List[Dict[str, Any]] = []

    def add_mail(self, mail: MailEvent) -> None:
        self._mails.append({
            "to": ", ".join(mail.to),
            "from": mail.sender,
            "subject": mail.subject,
            "headers": "\n".join(f"{k}: {v}" for k, v in mail.headers.items()),
        })

    def collect(self) -> Dict[str, Any]:
        return {"count": len(self._mails), "mails": list(self._mails)}

    def widgets(self) -> Dict[str, Dict[str, Any]]:
        return {
            "emails": {
                "title": "Mails",
                "icon": "inbox",
                "widget": "mails",
                "map": "mails.mails",
                "badge": "mails.count",
            },
        }
