# Staff invitations and studio onboarding e-mails
import os
import resend
from typing import Dict
from dotenv import load_dotenv

load_dotenv()


class EmailService:
    """
    Centralized email service using Resend
    """

    def __init__(self):
        """Initialize Resend with API key"""
        if os.getenv("TESTING") in ("1", "True"):
            self.disabled = True
            self.api_key = None
            self.from_email = "test@example.com"
            self.frontend_url = "http://localhost:3000"
            print("⚠️ EmailService running in TEST MODE, no API key required")
            return
        self.disabled = False
        self.api_key = os.getenv("RESEND_API_KEY")
        if not self.api_key:
            raise ValueError("RESEND_API_KEY environment variable is required")

        resend.api_key = self.api_key
        self.from_email = os.getenv("RESEND_FROM_EMAIL", "onboarding@resend.dev")
        self.frontend_url = os.getenv("FRONTEND_URL", "http://localhost:3000")

    def _send(self, params: Dict, message: str) -> Dict:
        if self.disabled:
            return {"success": True, "message": f"{message} (test mode)", "email_id": None}
        try:
            email_response = resend.Emails.send(params)
            return {
                "success": True,
                "message": message,
                "email_id": email_response.get("id"),
            }
        except Exception as e:
            return {"success": False, "error": str(e)}

    def send_team_invitation(
        self, to_email: str, full_name: str, studio_name: str, role: str, invite_token: str
    ) -> Dict:
        """
        Invite a professional to a studio team

        Args:
            to_email: Recipient email address
            full_name: Name shown in the greeting
            studio_name: Studio the person is joining
            role: MASTER, ARTIST, PIERCER or RECEPTIONIST
            invite_token: Signed token used to set the first password

        Returns:
            Dict with 'success' boolean and 'message' or 'error'
        """
        link = f"{self.frontend_url}/update-password?token={invite_token}"
        params = {
            "from": self.from_email,
            "to": [to_email],
            "subject": f"Convite para a equipe {studio_name} no SafeTatt",
            "html": f"""
                <html>
                    <body style="font-family: Arial, sans-serif; background-color: #111111; color: #f4f4f5; padding: 30px;">
                        <h1 style="color: #92FFAD;">SafeTatt</h1>
                        <p>Olá <strong>{full_name or to_email}</strong>,</p>
                        <p>Você foi convidado para fazer parte de <strong>{studio_name}</strong> como <strong>{role}</strong>.</p>
                        <p>
                            <a href="{link}" style="background-color: #92FFAD; color: #111111; padding: 12px 24px; border-radius: 8px; text-decoration: none; font-weight: bold;">
                                Definir minha senha
                            </a>
                        </p>
                        <p style="color: #a1a1aa; font-size: 12px;">Se você não esperava este convite, ignore este e-mail.</p>
                    </body>
                </html>
            """,
        }
        return self._send(params, "Invitation email sent successfully")

    def send_studio_welcome(self, to_email: str, studio_name: str, slug: str) -> Dict:
        """Sent to the owner when a platform admin provisions a studio."""
        params = {
            "from": self.from_email,
            "to": [to_email],
            "subject": f"{studio_name} está pronto no SafeTatt",
            "html": f"""
                <html>
                    <body style="font-family: Arial, sans-serif;">
                        <h1>Bem-vindo ao SafeTatt!</h1>
                        <p>O estúdio <strong>{studio_name}</strong> foi criado.</p>
                        <p>Endereço de cadastro de clientes: {self.frontend_url}/s/{slug}</p>
                    </body>
                </html>
            """,
        }
        return self._send(params, "Welcome email sent successfully")
