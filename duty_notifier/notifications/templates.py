"""Jinja2 rendering of the duty notice.

A notice is three templates rendered from one context: the subject line,
the HTML body and a plain-text fallback. Only the HTML template is
autoescaped; missing context keys fail loudly through StrictUndefined.
"""

import logging
from typing import Dict

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError, select_autoescape

from .models import NotificationTemplateError

logger = logging.getLogger(__name__)

TEMPLATE_PACKAGE = "duty_notifier.notifications"


class TemplateRenderer:
    """Renders the subject, HTML body and text body of a duty notice.

    Rendering is pure: the same context always yields the same output.
    """

    def __init__(
        self,
        template_dir: str = "email_templates",
        subject_template: str = "duty_notice_subject.j2",
        html_template: str = "duty_notice_body.html.j2",
        text_template: str = "duty_notice_body.txt.j2",
    ):
        """
        Args:
            template_dir: Template directory inside the notifications package
            subject_template: Subject line template
            html_template: HTML body template (autoescaped)
            text_template: Plain-text body template
        """
        self.subject_template_name = subject_template
        self.html_template_name = html_template
        self.text_template_name = text_template

        self.env = Environment(
            loader=PackageLoader(TEMPLATE_PACKAGE, template_dir),
            autoescape=select_autoescape(enabled_extensions=("html.j2",), default=False),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def _render_one(self, template_name: str, context: Dict) -> str:
        return self.env.get_template(template_name).render(context)

    def render(self, context: Dict) -> Dict[str, str]:
        """Render the notice parts for one recipient.

        Args:
            context: Template variables, as built by build_notice_context

        Returns:
            Mapping with "subject" (collapsed to one line), "html_body" and
            "text_body"

        Raises:
            NotificationTemplateError: On any Jinja2 error, including a
                missing context key
        """
        try:
            parts = {
                "subject": " ".join(self._render_one(self.subject_template_name, context).split()),
                "html_body": self._render_one(self.html_template_name, context),
                "text_body": self._render_one(self.text_template_name, context),
            }
        except TemplateError as e:
            logger.error(f"Template rendering failed for {context.get('person_key', 'unknown')}: {e}")
            raise NotificationTemplateError(f"Template rendering failed: {e}") from e

        logger.debug(f"Rendered notice for {context.get('person_key', 'unknown')}")
        return parts
