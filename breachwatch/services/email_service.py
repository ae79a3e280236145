import asyncio
import logging
from functools import partial
from jinja2 import Environment, FileSystemLoader, select_autoescape
from mailjet_rest import Client
from breachwatch.base.exception import DispatchFailure
from breachwatch.handlers.env_handler import env, TEMPLATES_DIR

logger = logging.getLogger(__name__)

BASE_URL = env.state["base_url"]
SENDER_EMAIL = env.state["sender"]
SENDER_NAME = env.state["sender_name"]
MAILJET_API_KEY = env.mailjet["api_key"]
MAILJET_SECRET_KEY = env.mailjet["secret_key"]

class EmailService:
    def __init__(self):
        self.mailjet = Client(auth=(MAILJET_API_KEY, MAILJET_SECRET_KEY), version='v3.1')
        self.env = Environment(
            loader=FileSystemLoader(TEMPLATES_DIR),
            autoescape=select_autoescape(["html"])
        )

    def render(self, template_id: str, context: dict) -> str:
        """Render an email body; `which_view` in the context picks the partial."""
        template = self.env.get_template(f"{template_id}.html")
        return template.render(base_url=BASE_URL, **context)

    async def send(self, template_id: str, recipient: str, context: dict):
        """
        Send a templated email to a single recipient.

        Any Mailjet error or non-2xx status is raised as DispatchFailure so
        signup and verification fail loudly instead of pretending to succeed.
        """
        subject = context.get("subject", "Breach Watch")
        try:
            html_content = self.render(template_id, context)
            data = {
                'Messages': [{
                    "From": {"Email": SENDER_EMAIL, "Name": SENDER_NAME},
                    "To": [{"Email": recipient, "Name": recipient}],
                    "Subject": subject,
                    "HTMLPart": html_content,
                    "TextPart": context.get("text", subject),
                }]
            }

            # Send email asynchronously
            loop = asyncio.get_event_loop()
            response = await loop.run_in_executor(None, partial(self.mailjet.send.create, data=data))
        except Exception as e:
            logger.exception("Error sending %s email", template_id)
            raise DispatchFailure(recipient, details=str(e)) from e

        if not 200 <= response.status_code < 300:
            logger.error("Mailjet refused %s email with status %s", template_id, response.status_code)
            raise DispatchFailure(recipient, details=f"Mailjet status {response.status_code}")
        return response

def new_email_service() -> EmailService:
    """EmailService factory"""
    return EmailService()
