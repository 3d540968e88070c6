import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Content, Email, Mail, To

from retailhub.core.config import settings


class EmailDeliveryError(Exception):
    pass


def _send_via_console(to_email: str, subject: str, text_body: str, html_body: str | None) -> None:
    print(f"[email] to={to_email} subject={subject!r}")
    print(text_body)


def _send_via_smtp(to_email: str, subject: str, text_body: str, html_body: str | None) -> None:
    if not settings.smtp_host:
        raise EmailDeliveryError("SMTP host is not configured")

    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = settings.email_from
    message["To"] = to_email
    message.attach(MIMEText(text_body, "plain", "utf-8"))
    if html_body:
        message.attach(MIMEText(html_body, "html", "utf-8"))

    try:
        if settings.smtp_use_ssl:
            client = smtplib.SMTP_SSL(
                host=settings.smtp_host,
                port=settings.smtp_port,
                timeout=settings.smtp_timeout_seconds,
            )
        else:
            client = smtplib.SMTP(
                host=settings.smtp_host,
                port=settings.smtp_port,
                timeout=settings.smtp_timeout_seconds,
            )

        with client:
            if settings.smtp_starttls and not settings.smtp_use_ssl:
                client.starttls()
            if settings.smtp_username:
                client.login(settings.smtp_username, settings.smtp_password)
            client.sendmail(settings.email_from, [to_email], message.as_string())
    except Exception as exc:
        raise EmailDeliveryError(str(exc)) from exc


def _send_via_sendgrid(to_email: str, subject: str, text_body: str, html_body: str | None) -> None:
    if not settings.sendgrid_api_key:
        raise EmailDeliveryError("SENDGRID_API_KEY is not configured")

    message = Mail(
        from_email=Email(settings.email_from),
        to_emails=To(to_email),
        subject=subject,
    )
    message.add_content(Content("text/plain", text_body))
    if html_body:
        message.add_content(Content("text/html", html_body))

    try:
        client = SendGridAPIClient(settings.sendgrid_api_key)
        response = client.send(message)
        if response.status_code >= 400:
            raise EmailDeliveryError(f"SendGrid error status: {response.status_code}")
    except Exception as exc:
        raise EmailDeliveryError(str(exc)) from exc


def send_email(to_email: str, subject: str, text_body: str, html_body: str | None = None) -> None:
    if settings.email_provider == "console":
        _send_via_console(to_email, subject, text_body, html_body)
        return
    if settings.email_provider == "smtp":
        _send_via_smtp(to_email, subject, text_body, html_body)
        return
    if settings.email_provider == "sendgrid":
        _send_via_sendgrid(to_email, subject, text_body, html_body)
        return
    raise EmailDeliveryError(f"Unsupported EMAIL_PROVIDER: {settings.email_provider}")


def build_welcome_message(tenant_name: str, subdomain: str, plan: str) -> tuple[str, str, str]:
    subject = f"Welcome to {settings.app_name}"
    text = (
        f"Your business {tenant_name} is ready.\n\n"
        f"Storefront subdomain: {subdomain}\n"
        f"Plan: {plan}\n"
    )
    html = (
        f"<p>Your business <strong>{tenant_name}</strong> is ready.</p>"
        f"<p>Storefront subdomain: <code>{subdomain}</code><br>Plan: {plan}</p>"
    )
    return subject, text, html


def build_upgrade_message(tenant_name: str) -> tuple[str, str, str]:
    subject = "Your account is now on the enterprise plan"
    text = (
        f"{tenant_name} has been upgraded to the enterprise plan.\n\n"
        "Your data now lives in a dedicated database and transaction fees no longer apply.\n"
    )
    html = (
        f"<p><strong>{tenant_name}</strong> has been upgraded to the enterprise plan.</p>"
        "<p>Your data now lives in a dedicated database and transaction fees no longer apply.</p>"
    )
    return subject, text, html


def send_notification(to_email: str | None, message: tuple[str, str, str]) -> bool:
    if not to_email:
        return False
    subject, text_body, html_body = message
    try:
        send_email(to_email, subject, text_body, html_body)
    except EmailDeliveryError as exc:
        print(f"[email] delivery to {to_email} failed: {exc}")
        return False
    return True
