"""
MJML Email Templates
Booking notification emails using MJML for responsive, cross-client compatibility
"""

from html import escape
from typing import Optional

from .config import BUSINESS_NAME

# Blue/Slate color scheme
THEME = {
    "primary": "#2271b1",
    "primary_dark": "#135e96",
    "primary_light": "#e7f1fa",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#16a34a",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
    business_name: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""
    business_name = escape(business_name or BUSINESS_NAME)

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{escape(cta_url)}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{escape(title)}</mj-title>
        <mj-preview>{escape(preview_text)}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <!-- Header -->
        <mj-section background-color="#ffffff" padding="32px 20px 0 20px">
          <mj-column>
            <mj-text font-size="20px" font-weight="700" color="{THEME['primary']}" padding="0">
              {business_name}
            </mj-text>
          </mj-column>
        </mj-section>

        <mj-section background-color="#ffffff" padding="0 40px 32px 40px">
          <mj-column>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="24px 0 0 0" />
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <!-- Footer -->
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              {business_name}
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _details_table(rows: list[tuple[str, str]]) -> str:
    """Label/value rows rendered as an mj-table"""
    body = "".join(
        f"""
        <tr>
          <td style="padding: 6px 0; color: {THEME['text_muted']}; width: 40%;">{escape(label)}</td>
          <td style="padding: 6px 0; color: {THEME['text_primary']}; font-weight: 600;">{escape(str(value))}</td>
        </tr>"""
        for label, value in rows
        if value not in (None, "")
    )
    return f"""
    <mj-table padding="0 0 24px 0" font-size="15px">
      {body}
    </mj-table>
    """


def booking_confirmation_template(
    customer_name: str,
    reference: str,
    consultation_type: str,
    booking_date: str,
    booking_time: str,
    duration: int,
    amount: str,
    cancel_url: str,
    business_name: Optional[str] = None,
) -> str:
    """Customer booking confirmation"""
    details = _details_table(
        [
            ("Reference Number", reference),
            ("Service", consultation_type),
            ("Date", booking_date),
            ("Time", booking_time),
            ("Duration", f"{duration} minutes"),
            ("Amount", amount),
        ]
    )
    content = f"""
    <mj-text>
      Dear {escape(customer_name)},
    </mj-text>

    <mj-text padding="0 0 16px 0">
      Your booking has been confirmed. Here are the details:
    </mj-text>

    {details}

    <mj-text color="{THEME['text_muted']}" font-size="14px">
      If you need to cancel, use the button below.
    </mj-text>
    """

    return get_base_template(
        title="Booking Confirmed!",
        preview_text=f"Your booking {reference} is confirmed",
        content_sections=content,
        cta_url=cancel_url,
        cta_label="Cancel Booking",
        business_name=business_name,
    )


def booking_reminder_template(
    customer_name: str,
    reference: str,
    consultation_type: str,
    booking_date: str,
    booking_time: str,
    duration: int,
    cancel_url: str,
    business_name: Optional[str] = None,
) -> str:
    """Upcoming booking reminder"""
    details = _details_table(
        [
            ("Reference Number", reference),
            ("Service", consultation_type),
            ("Date", booking_date),
            ("Time", booking_time),
            ("Duration", f"{duration} minutes"),
        ]
    )
    content = f"""
    <mj-text>
      Dear {escape(customer_name)},
    </mj-text>

    <mj-text padding="0 0 16px 0">
      This is a reminder about your upcoming booking:
    </mj-text>

    {details}

    <mj-text>
      We look forward to seeing you!
    </mj-text>
    """

    return get_base_template(
        title="Upcoming Booking Reminder",
        preview_text=f"Reminder: {consultation_type} on {booking_date} at {booking_time}",
        content_sections=content,
        cta_url=cancel_url,
        cta_label="Cancel Booking",
        business_name=business_name,
    )


def booking_cancellation_template(
    customer_name: str,
    reference: str,
    consultation_type: str,
    booking_date: str,
    booking_time: str,
    business_name: Optional[str] = None,
) -> str:
    details = _details_table(
        [
            ("Reference Number", reference),
            ("Service", consultation_type),
            ("Date", booking_date),
            ("Time", booking_time),
        ]
    )
    content = f"""
    <mj-text>
      Dear {escape(customer_name)},
    </mj-text>

    <mj-text padding="0 0 16px 0">
      Your booking has been cancelled:
    </mj-text>

    {details}

    <mj-text color="{THEME['danger']}" font-size="14px">
      If you did not request this cancellation, please contact us immediately.
    </mj-text>
    """

    return get_base_template(
        title="Booking Cancelled",
        preview_text=f"Booking {reference} has been cancelled",
        content_sections=content,
        business_name=business_name,
    )


def admin_new_booking_template(
    reference: str,
    customer_name: str,
    customer_email: str,
    customer_phone: Optional[str],
    consultation_type: str,
    booking_date: str,
    booking_time: str,
    duration: int,
    amount: str,
    customer_notes: Optional[str],
    admin_url: str,
) -> str:
    """Admin notification for a new booking"""
    notes_section = ""
    if customer_notes:
        notes_section = f"""
        <mj-text font-size="14px" font-weight="600" color="{THEME['text_primary']}" padding="0 0 4px 0">
          Customer Notes
        </mj-text>
        <mj-text font-size="14px" padding="0 0 16px 0">
          {escape(customer_notes)}
        </mj-text>
        """

    details = _details_table(
        [
            ("Reference", reference),
            ("Customer", customer_name),
            ("Email", customer_email),
            ("Phone", customer_phone),
            ("Service", consultation_type),
            ("Date", booking_date),
            ("Time", booking_time),
            ("Duration", f"{duration} minutes"),
            ("Amount", amount),
        ]
    )
    content = f"""
    <mj-text padding="0 0 16px 0">
      A new booking has been made:
    </mj-text>

    {details}

    {notes_section}
    """

    return get_base_template(
        title="New Booking Received",
        preview_text=f"{customer_name} booked {consultation_type} on {booking_date}",
        content_sections=content,
        cta_url=admin_url,
        cta_label="View Booking",
    )


def admin_cancellation_template(
    reference: str,
    customer_name: str,
    customer_email: str,
    consultation_type: str,
    booking_date: str,
    booking_time: str,
    admin_url: str,
) -> str:
    details = _details_table(
        [
            ("Reference", reference),
            ("Customer", f"{customer_name} ({customer_email})"),
            ("Service", consultation_type),
            ("Date", booking_date),
            ("Time", booking_time),
        ]
    )
    content = f"""
    <mj-text padding="0 0 16px 0">
      A booking has been cancelled:
    </mj-text>

    {details}
    """

    return get_base_template(
        title="Booking Cancelled",
        preview_text=f"{customer_name} cancelled booking {reference}",
        content_sections=content,
        cta_url=admin_url,
        cta_label="View Booking",
    )


def refund_notification_template(
    customer_name: str,
    reference: str,
    consultation_type: str,
    booking_date: str,
    amount: str,
    business_name: Optional[str] = None,
) -> str:
    details = _details_table(
        [
            ("Reference Number", reference),
            ("Service", consultation_type),
            ("Original Date", booking_date),
            ("Refund Amount", amount),
        ]
    )
    content = f"""
    <mj-text>
      Dear {escape(customer_name)},
    </mj-text>

    <mj-text padding="0 0 16px 0">
      A refund has been processed for your booking:
    </mj-text>

    {details}

    <mj-text color="{THEME['text_muted']}" font-size="14px">
      The refund will appear in your account within 5-10 business days.
    </mj-text>
    """

    return get_base_template(
        title="Refund Processed",
        preview_text=f"Refund of {amount} processed for {reference}",
        content_sections=content,
        business_name=business_name,
    )
