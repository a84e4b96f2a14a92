"""
MJML Email Templates
Branded ROAM emails for onboarding, staff invitations and support replies
"""

from html import escape
from typing import Optional

# ROAM brand colors
THEME = {
    "primary": "#4F46E5",
    "primary_dark": "#4338CA",
    "primary_light": "#EEF2FF",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#1e293b",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#15803d",
    "success_bg": "#f0fdf4",
    "danger": "#991b1b",
    "danger_bg": "#fef2f2",
}

LOGO_URL = (
    "https://vssomyuyhicaxsgiaupo.supabase.co/storage/v1/object/public/"
    "email-brand-images/ROAM/roam-logo-email.png"
)
SITE_URL = "https://roamyourbestlife.com"


def _multiline(text: Optional[str]) -> str:
    return escape(text or "").replace("\n", "<br/>")


def info_box(heading: str, body: str, color: str, background: str) -> str:
    return f"""
    <mj-text padding="16px 0 0 0">
      <div style="background: {background}; border-left: 4px solid {color}; padding: 16px 20px; border-radius: 6px;">
        <p style="margin: 0 0 8px; color: {color}; font-weight: 600;">{heading}</p>
        <p style="margin: 0; color: {THEME['text_secondary']}; line-height: 1.6;">{body}</p>
      </div>
    </mj-text>
    """


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
    is_provider_email: bool = False,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section background-color="#ffffff" padding="0 40px 40px 40px">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="0"
              inner-padding="16px 36px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    footer_notice = ""
    if is_provider_email:
        footer_notice = """
        <mj-text align="center" font-size="12px" color="#94a3b8" padding="12px 0 0 0">
          You're receiving this because you registered a business on ROAM.
        </mj-text>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <!-- Header with Logo -->
        <mj-section background-color="#ffffff" padding="32px 20px 16px 20px">
          <mj-column>
            <mj-image src="{LOGO_URL}" alt="ROAM - Your Best Life. Everywhere." width="180px" href="{SITE_URL}" padding="0" />
            <mj-text align="center" font-size="14px" font-weight="600" color="{THEME['primary']}" padding="10px 0 0 0">
              Your Best Life. Everywhere.
            </mj-text>
          </mj-column>
        </mj-section>

        <mj-section background-color="#ffffff" padding="0 40px 24px 40px">
          <mj-column>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="0 0 24px 0" />
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="#ffffff" padding="0 40px 32px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="700" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <!-- Footer -->
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="14px" color="#94a3b8" padding="0">
              <a href="{SITE_URL}/privacy" style="color: {THEME['primary']}; text-decoration: none;">Privacy Policy</a>
              <span style="color: #cbd5e1; margin: 0 8px;">|</span>
              <a href="{SITE_URL}/terms" style="color: {THEME['primary']}; text-decoration: none;">Terms of Service</a>
            </mj-text>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="12px 0 0 0">
              © ROAM. All rights reserved.
            </mj-text>
            {footer_notice}
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def application_submitted_template(business_name: str, first_name: Optional[str]) -> str:
    """Confirmation sent to the owner after phase 1 submission"""
    greeting = f"Hi {escape(first_name)}," if first_name else "Hello,"
    content = f"""
    <mj-text>{greeting}</mj-text>
    <mj-text>
      Thank you for submitting the application for <strong>{escape(business_name)}</strong>.
      Our team is reviewing your business information and documents.
    </mj-text>
    {info_box(
        "What happens next",
        "Reviews usually take 2-3 business days. Once approved you will receive a secure link "
        "to finish setting up payments and your service catalogue.",
        THEME["primary"],
        THEME["primary_light"],
    )}
    """
    return get_base_template(
        title="Application Received",
        preview_text=f"We received the application for {business_name}",
        content_sections=content,
        is_provider_email=True,
    )


def business_approved_template(
    business_name: str, phase2_url: str, approval_notes: Optional[str] = None
) -> str:
    """Approval email with the phase 2 onboarding link"""
    notes = ""
    if approval_notes:
        notes = info_box("Notes from our team", _multiline(approval_notes), THEME["success"], THEME["success_bg"])

    content = f"""
    <mj-text>
      Congratulations! <strong>{escape(business_name)}</strong> has been approved to offer services on ROAM.
    </mj-text>
    {notes}
    <mj-text padding="16px 0 0 0">
      Complete the second phase of onboarding to start accepting bookings:
    </mj-text>
    <mj-text padding="0 0 0 20px">
      1. Verify your identity<br/>
      2. Connect your bank account<br/>
      3. Set up Stripe payouts and tax information<br/>
      4. Choose your services and pricing
    </mj-text>
    <mj-text font-size="14px" color="{THEME['text_muted']}">
      This secure link expires in 7 days.
    </mj-text>
    """
    return get_base_template(
        title="Your Business Has Been Approved!",
        preview_text="Complete your ROAM onboarding",
        content_sections=content,
        cta_url=phase2_url,
        cta_label="Continue Onboarding",
        is_provider_email=True,
    )


def application_rejected_template(business_name: str, rejection_reason: str) -> str:
    content = f"""
    <mj-text>
      Thank you for your interest in ROAM. After reviewing the application for
      <strong>{escape(business_name)}</strong>, we are unable to approve it at this time.
    </mj-text>
    {info_box("Reason for Decision", _multiline(rejection_reason), THEME["danger"], THEME["danger_bg"])}
    <mj-text padding="16px 0 0 0">
      You are welcome to address the points above and submit your application again.
      If you have questions, reply to this email or contact us at
      <a href="mailto:providersupport@roamyourbestlife.com" style="color: {THEME['primary']};">providersupport@roamyourbestlife.com</a>.
    </mj-text>
    """
    return get_base_template(
        title="Application Status Update",
        preview_text="An update on your ROAM application",
        content_sections=content,
        is_provider_email=True,
    )


def staff_invitation_template(business_name: str, role: str, onboarding_link: str) -> str:
    """Invitation for a new staff member to join a business"""
    content = f"""
    <mj-text>
      You've been invited to join <strong>{escape(business_name)}</strong> on ROAM as a
      <strong>{escape(role)}</strong>.
    </mj-text>
    <mj-text>
      Click the button below to create your account and complete your profile.
      The invitation expires in 7 days.
    </mj-text>
    """
    return get_base_template(
        title="You're Invited to ROAM",
        preview_text=f"Join {business_name} on ROAM",
        content_sections=content,
        cta_url=onboarding_link,
        cta_label="Accept Invitation",
    )


def staff_welcome_template(
    first_name: str, business_name: str, role: str, login_url: str, temporary_password: Optional[str] = None
) -> str:
    """Welcome for staff added directly by an owner or dispatcher"""
    if temporary_password:
        credentials = info_box(
            "Your temporary password",
            f"<code>{escape(temporary_password)}</code><br/>You will be asked to change it after your first login.",
            THEME["primary"],
            THEME["primary_light"],
        )
    else:
        credentials = """
    <mj-text>Since you already have a ROAM account, sign in with your existing email and password.</mj-text>
    """
    content = f"""
    <mj-text>Hi {escape(first_name)},</mj-text>
    <mj-text>
      You've been added as a <strong>{escape(role)}</strong> at <strong>{escape(business_name)}</strong>
      on the ROAM platform.
    </mj-text>
    {credentials}
    """
    return get_base_template(
        title=f"Welcome to {business_name}!",
        preview_text=f"You've been added to {business_name} on ROAM",
        content_sections=content,
        cta_url=login_url,
        cta_label="Login to ROAM Provider Portal",
        is_provider_email=True,
    )


def contact_form_template(
    name: str, email: str, message: str, phone: Optional[str] = None, subject: Optional[str] = None
) -> str:
    """Internal notification to support for a contact form submission"""
    rows = [("Name", escape(name)), ("Email", f'<a href="mailto:{escape(email)}">{escape(email)}</a>')]
    if phone:
        rows.append(("Phone", escape(phone)))
    if subject:
        rows.append(("Subject", escape(subject)))

    fields = "".join(
        f'<p style="margin: 0 0 8px;"><strong style="color: {THEME["primary"]};">{label}:</strong> {value}</p>'
        for label, value in rows
    )
    content = f"""
    <mj-text>You have received a new message from the contact form.</mj-text>
    <mj-text>{fields}</mj-text>
    {info_box("Message", _multiline(message), THEME["primary"], THEME["primary_light"])}
    <mj-text padding="16px 0 0 0">
      Please respond within one business day. You can reply directly to {escape(email)}.
    </mj-text>
    """
    return get_base_template(
        title="New Contact Form Submission",
        preview_text=f"Message from {name}",
        content_sections=content,
    )


def contact_reply_template(
    full_name: Optional[str],
    reply_message: str,
    original_subject: Optional[str],
    original_message: str,
    submitted_on: Optional[str],
) -> str:
    greeting = f"Dear {escape(full_name)}," if full_name else "Hello,"
    original = (
        f"<strong>Subject:</strong> {escape(original_subject or '')}<br/>"
        f"<strong>Date:</strong> {escape(submitted_on or '')}<br/><br/>"
        f"{_multiline(original_message)}"
    )
    content = f"""
    <mj-text>{greeting}</mj-text>
    <mj-text>{_multiline(reply_message)}</mj-text>
    {info_box("Your Original Message", original, THEME["primary"], THEME["background"])}
    {info_box(
        "Need Further Assistance?",
        "If you have any additional questions, reply to this email or contact us directly.",
        THEME["success"],
        THEME["success_bg"],
    )}
    <mj-text padding="24px 0 0 0">Thank you for contacting ROAM!<br/><strong>ROAM Support Team</strong></mj-text>
    """
    return get_base_template(
        title="Response from ROAM Support",
        preview_text="We've replied to your message",
        content_sections=content,
    )
