"""
Email Notification Service for Mai Sushi.

Handles transactional emails for:
- Order confirmations (notification relay email channel)

Sends through SendGrid. The service holds its own configuration so it can
run on worker threads outside the Flask app context.
"""
import logging
import re
from typing import Dict, Any, Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending transactional emails."""

    DEFAULT_FROM_EMAIL = 'orders@maisushi.ca'
    DEFAULT_FROM_NAME = 'Mai Sushi'

    # Default email templates
    DEFAULT_TEMPLATES = {
        'order_confirmation': {
            'name': 'Order Confirmation',
            'subject': 'Mai Sushi order #{{order_id}} confirmed',
            'body': '''
Hi {{customer_name}},

Thank you for your order! Here is your summary.

**Order #{{order_id}}**
{{items}}

- Subtotal: {{subtotal}}
- GST: {{gst}}
- QST: {{qst}}
{{#if delivery_fee}}
- Delivery: {{delivery_fee}}
{{/if}}
- **Total: {{final_total}}**

{{#if delivery_address}}
Delivering to: {{delivery_address}}
{{/if}}
{{#if points_message}}
{{points_message}}
{{/if}}

Arigato,
The Mai Sushi Team
            ''',
            'category': 'order',
        },
    }

    def __init__(self, api_key: str = None, from_email: str = None, from_name: str = None):
        self.sendgrid_api_key = api_key
        self.from_email = from_email or self.DEFAULT_FROM_EMAIL
        self.from_name = from_name or self.DEFAULT_FROM_NAME

    def get_template(self, template_key: str) -> Optional[Dict[str, Any]]:
        return self.DEFAULT_TEMPLATES.get(template_key)

    def render_template(self, template: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, str]:
        """
        Render a template with the provided data.
        Uses simple {{variable}} replacement (Handlebars-like).
        """
        subject = template['subject']
        body = template['body']

        # Handle conditionals first so a placeholder inside a false block is dropped
        # {{#if var}}...{{/if}} - include content if var is truthy
        def replace_conditionals(text: str, data: Dict[str, Any]) -> str:
            pattern = r'\{\{#if (\w+)\}\}(.*?)\{\{/if\}\}'

            def replacer(match):
                var_name = match.group(1)
                content = match.group(2)
                if data.get(var_name):
                    return content
                return ''

            return re.sub(pattern, replacer, text, flags=re.DOTALL)

        subject = replace_conditionals(subject, data)
        body = replace_conditionals(body, data)

        for key, value in data.items():
            placeholder = '{{' + key + '}}'
            subject = subject.replace(placeholder, str(value or ''))
            body = body.replace(placeholder, str(value or ''))

        return {
            'subject': subject.strip(),
            'body': body.strip(),
        }

    def send_email(
        self,
        to_email: str,
        to_name: str,
        subject: str,
        body: str,
    ) -> Dict[str, Any]:
        """
        Send an email using SendGrid.
        """
        if not self.sendgrid_api_key:
            logger.warning('SendGrid API key not configured, email not sent')
            return {'success': False, 'error': 'SendGrid not configured'}

        if not to_email:
            return {'success': False, 'error': 'No recipient email'}

        try:
            sg = SendGridAPIClient(self.sendgrid_api_key)

            sender = Email(email=self.from_email, name=self.from_name)
            recipient = To(email=to_email, name=to_name)

            message = Mail(
                from_email=sender,
                to_emails=recipient,
                subject=subject,
                html_content=self._markdown_to_html(body)
            )

            response = sg.send(message)

            if response.status_code >= 300:
                logger.warning('SendGrid returned %s for %s', response.status_code, to_email)
                return {'success': False, 'status_code': response.status_code}

            return {
                'success': True,
                'status_code': response.status_code,
            }

        except Exception as e:
            logger.error(f'Failed to send email: {str(e)}')
            return {'success': False, 'error': str(e)}

    def _markdown_to_html(self, text: str) -> str:
        """Convert simple markdown to HTML."""
        # Convert **bold** to <strong>
        text = re.sub(r'\*\*(.+?)\*\*', r'<strong>\1</strong>', text)

        text = text.replace('\n\n', '</p><p>')
        text = text.replace('\n', '<br>')
        text = f'<p>{text}</p>'

        html = f'''
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }}
        p {{ margin: 0 0 16px 0; }}
        strong {{ font-weight: 600; }}
    </style>
</head>
<body>
    {text}
</body>
</html>
        '''

        return html

    def send_template_email(
        self,
        template_key: str,
        to_email: str,
        to_name: str,
        data: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Render a template and send it."""
        template = self.get_template(template_key)
        if not template:
            return {'success': False, 'error': f'Template not found: {template_key}'}

        rendered = self.render_template(template, data)
        return self.send_email(
            to_email=to_email,
            to_name=to_name,
            subject=rendered['subject'],
            body=rendered['body'],
        )
