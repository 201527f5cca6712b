# Customer notifications for orders and deliveries
import os
from html import escape

import resend
from typing import Dict
from dotenv import load_dotenv

load_dotenv()


def format_rupiah(amount) -> str:
    return "Rp " + f"{int(amount):,}".replace(",", ".")


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
            return
        self.disabled = False
        self.api_key = os.getenv("RESEND_API_KEY")
        if not self.api_key:
            raise ValueError("RESEND_API_KEY environment variable is required")

        resend.api_key = self.api_key
        self.from_email = os.getenv("RESEND_FROM_EMAIL", "onboarding@resend.dev")
        self.frontend_url = os.getenv("FRONTEND_URL", "http://localhost:3000")

    def _send(self, to_email: str, subject: str, html: str) -> Dict:
        if self.disabled:
            return {"success": True, "message": "Email disabled in test mode"}
        try:
            email_response = resend.Emails.send(
                {
                    "from": self.from_email,
                    "to": [to_email],
                    "subject": subject,
                    "html": html,
                }
            )
            return {
                "success": True,
                "message": "Email sent successfully",
                "email_id": email_response.get("id"),
            }
        except Exception as e:
            return {"success": False, "error": str(e)}

    def send_order_confirmation(
        self, to_email, customer_name, tracking_code, total, payment_method
    ) -> Dict:
        """
        Send the tracking code right after checkout

        Returns:
            Dict with 'success' boolean and 'message' or 'error'
        """
        orders_url = f"{self.frontend_url}/pelanggan/pesanan"
        html = f"""
        <html>
            <body style="font-family: Arial, sans-serif; color: #2d3748;">
                <h2 style="color: #b45309;">Thank you for your order!</h2>
                <p>Hi <strong>{escape(customer_name)}</strong>,</p>
                <p>We have received your catering order.</p>
                <table cellpadding="6">
                    <tr><td><strong>Tracking code</strong></td><td>{tracking_code}</td></tr>
                    <tr><td><strong>Total</strong></td><td>{format_rupiah(total)}</td></tr>
                    <tr><td><strong>Payment</strong></td><td>{escape(payment_method)}</td></tr>
                </table>
                <p>Please upload your proof of payment so we can start preparing it.</p>
                <p><a href="{orders_url}">View my orders</a></p>
            </body>
        </html>
        """
        return self._send(to_email, f"Order {tracking_code} received", html)

    def send_delivery_notice(self, to_email, customer_name, tracking_code, courier_name) -> Dict:
        """Tell the customer their order has arrived"""
        html = f"""
        <html>
            <body style="font-family: Arial, sans-serif; color: #2d3748;">
                <h2 style="color: #15803d;">Your order has arrived</h2>
                <p>Hi <strong>{escape(customer_name)}</strong>,</p>
                <p>Order <strong>{tracking_code}</strong> was delivered by {escape(courier_name)}.</p>
                <p>Enjoy your meal!</p>
            </body>
        </html>
        """
        return self._send(to_email, f"Order {tracking_code} delivered", html)
