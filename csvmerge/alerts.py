## csvmerge/alerts.py

from __future__ import annotations
import os, smtplib, requests
from email.mime.text import MIMEText

from .utils import logger

log = logger.getChild("alerts")


def send_email(subject: str, body: str):
    host = os.getenv("SMTP_HOST"); user = os.getenv("SMTP_USER"); pwd = os.getenv("SMTP_PASS")
    to_addr = os.getenv("ALERT_EMAIL_TO")
    if not all([host, user, pwd, to_addr]):
        return
    msg = MIMEText(body)
    msg["Subject"] = subject
    msg["From"] = user
    msg["To"] = to_addr
    port = int(os.getenv("SMTP_PORT", "587"))
    with smtplib.SMTP(host, port, timeout=10) as s:
        s.starttls(); s.login(user, pwd); s.sendmail(user, [to_addr], msg.as_string())


def send_slack(text: str):
    url = os.getenv("SLACK_WEBHOOK_URL")
    if not url: return
    r = requests.post(url, json={"text": text}, timeout=5)
    r.raise_for_status()


def notify_failure(subject: str, body: str):
    """Best effort: a broken mail server or webhook must not stop the watcher."""
    for send, args in ((send_email, (subject, body)),
                       (send_slack, (f":rotating_light: {subject}\n{body}",))):
        try:
            send(*args)
        except Exception as e:
            log.warning(f"Alert via {send.__name__} failed: {e}")
