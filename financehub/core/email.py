"""
FinanceHUB - Email Service
Envio de emails transacionais (código de verificação de login)
"""
import smtplib
import ssl
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
import logging

from .config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Serviço de envio de emails via SMTP"""

    def __init__(self):
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.user = settings.SMTP_USER
        self.password = settings.SMTP_PASSWORD
        self.from_email = settings.SMTP_FROM_EMAIL
        self.from_name = settings.SMTP_FROM_NAME
        self.use_tls = settings.SMTP_TLS
        self.use_ssl = settings.SMTP_SSL

    def is_configured(self) -> bool:
        """Verifica se o serviço de email está configurado"""
        return bool(self.user and self.password)

    def _build_message(self, to_email: str, subject: str, html_content: str, text_content: Optional[str]):
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to_email
        # Clientes exibem a última parte suportada: texto antes do HTML
        if text_content:
            message.attach(MIMEText(text_content, "plain", "utf-8"))
        message.attach(MIMEText(html_content, "html", "utf-8"))
        return message

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            return smtplib.SMTP_SSL(self.host, self.port, context=ssl.create_default_context())
        server = smtplib.SMTP(self.host, self.port)
        if self.use_tls:
            try:
                server.starttls(context=ssl.create_default_context())
            except (smtplib.SMTPException, OSError):
                server.close()
                raise
        return server

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Envia um email transacional.

        Não lança exceção: falhas de SMTP/rede resultam em False e o
        chamador decide como reportar (o código já está persistido).
        """
        if not self.is_configured():
            logger.warning(f"[EMAIL] SMTP não configurado, envio para {to_email} ignorado")
            return False

        message = self._build_message(to_email, subject, html_content, text_content)
        try:
            with self._connect() as server:
                server.login(self.user, self.password)
                server.send_message(message, from_addr=self.from_email, to_addrs=[to_email])
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"[EMAIL] Falha no envio para {to_email}: {e}")
            return False

        logger.info(f"[EMAIL] Enviado para {to_email}")
        return True

    def send_auth_code_email(self, to_email: str, code: str, expiry_minutes: int) -> bool:
        """Envia o código de verificação de login"""
        subject = f"Seu código de acesso FinanceHUB: {code}"

        html_content = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
</head>
<body style="font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <div style="background: linear-gradient(135deg, #0f766e 0%, #115e59 100%); color: white; padding: 24px; text-align: center; border-radius: 10px 10px 0 0;">
            <h1 style="margin: 0; font-size: 24px;">FinanceHUB</h1>
        </div>

        <div style="background: #f9fafb; padding: 30px; border: 1px solid #e5e7eb;">
            <p>Use o código abaixo para entrar no sistema:</p>

            <div style="background: white; border: 2px solid #0f766e; border-radius: 10px; padding: 20px; text-align: center; margin: 20px 0;">
                <code style="font-size: 32px; font-weight: bold; letter-spacing: 8px; color: #0f766e;">{code}</code>
            </div>

            <p>O código expira em <strong>{expiry_minutes} minutos</strong> e só pode ser usado uma vez.</p>
            <p>Se você não solicitou este código, ignore este e-mail.</p>
        </div>

        <div style="background: #1f2937; color: #9ca3af; padding: 16px; text-align: center; border-radius: 0 0 10px 10px; font-size: 12px;">
            <p>Este e-mail foi enviado automaticamente pelo FinanceHUB.</p>
        </div>
    </div>
</body>
</html>
"""

        text_content = f"""
FinanceHUB - Código de acesso

Seu código: {code}

O código expira em {expiry_minutes} minutos e só pode ser usado uma vez.
Se você não solicitou este código, ignore este e-mail.
"""

        return self.send_email(to_email, subject, html_content, text_content)


# Instancia global do servico de email
email_service = EmailService()
