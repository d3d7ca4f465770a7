"""
Customer and staff emails for service requests, contact forms and the weekly report.
"""

import logging
from datetime import datetime
from html import escape
from typing import Any, Dict, List, Optional

from ..adapters.email import EmailAdapter
from ..exceptions import ValidationFailedError
from ..models import BookingForm, ContactEmailRequest, PropertyData
from .ics import build_calendar_invite, invite_attachment
from .pricing import PricingEngine, county_square_feet, format_currency
from .scheduling import build_appointment_window, parse_date, property_summary_fields

logger = logging.getLogger(__name__)

BUSINESS_NAME = "New Jersey Real Estate Appraisals and Photography"
BRAND_COLOR = "#4d0a97"

SERVICE_SUBJECT = "[NEW REQUEST] Service Confirmation - NJREAP"
CUSTOMER_CONTACT_SUBJECT = "Thank you for contacting NJREAP"

# the email shows the effective living area and the full address instead
EMAIL_SKIPPED_FIELDS = {"Living Sq Ft", "City/State/Zip"}

NEXT_STEPS = [
    "We'll send you an invoice within 24 hours",
    "Our team will contact you to confirm appointment details",
    "Add the calendar event to your schedule",
    "We'll arrive promptly at the scheduled time",
]


def _e(value: Any) -> str:
    return escape("" if value is None else str(value))


def display_living_area(form: BookingForm, property_data: PropertyData) -> str:
    sqft = county_square_feet(property_data.county_data)
    if form.user_entered_sqft:
        try:
            sqft = int(str(form.user_entered_sqft).replace(",", ""))
        except ValueError:
            pass
    return f"{sqft:,} sq ft" if sqft else "N/A"


def _info_card(title: str, value: Any) -> str:
    return (
        f'<td style="background:#f8f9fa;padding:16px;border-left:4px solid {BRAND_COLOR};width:50%;">'
        f'<h3 style="margin:0 0 8px;color:{BRAND_COLOR};font-size:15px;">{_e(title)}</h3>'
        f'<p style="margin:0;color:#333;font-size:14px;">{_e(value if value not in (None, "") else "N/A")}</p></td>'
    )


def _section(title: str, body: str) -> str:
    return (
        '<div style="margin-bottom:28px;">'
        f'<h2 style="color:{BRAND_COLOR};font-size:20px;border-bottom:2px solid #e8e8e8;padding-bottom:8px;">{_e(title)}</h2>'
        f'{body}</div>'
    )


def _page(title: str, header: str, subheader: str, content: str, business_phone: str, staff_email: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><meta name="viewport" content="width=device-width, initial-scale=1.0"><title>{_e(title)}</title></head>
<body style="margin:0;padding:0;font-family:'Helvetica Neue',Arial,sans-serif;">
<div style="max-width:600px;margin:0 auto;">
<div style="background-color:{BRAND_COLOR};color:white;padding:30px 20px;text-align:center;">
<h1 style="margin:0;font-size:26px;font-weight:300;">{_e(header)}</h1>
<p style="margin:10px 0 0;opacity:0.9;">{_e(subheader)}</p>
</div>
<div style="padding:30px 20px;background-color:#ffffff;">
{content}
</div>
<div style="background-color:#f8f9fa;padding:24px 20px;text-align:center;color:#666;font-size:13px;">
<p><strong>{_e(BUSINESS_NAME)}</strong></p>
<p>Professional Property Services | Licensed &amp; Insured</p>
<p>Email: {_e(staff_email)} | Phone: {_e(business_phone)}</p>
</div>
</div>
</body>
</html>"""


class NotificationDispatcher:
    def __init__(self, email: EmailAdapter, staff_email: str = "info@njreap.com",
                 business_phone: str = "(908) 437-8505", timezone: str = "America/New_York",
                 pricing: Optional[PricingEngine] = None):
        self.email = email
        self.staff_email = staff_email
        self.business_phone = business_phone
        self.timezone = timezone
        self.pricing = pricing or PricingEngine()

    # -------------------------------------------------------- service request

    def service_breakdown(self, form: BookingForm, property_data: PropertyData) -> List[Dict[str, Any]]:
        if not form.selected_services and form.service_breakdown:
            return [item.model_dump() for item in form.service_breakdown]
        quote = self.pricing.quote(form.selected_services, property_data.county_data,
                                   form.user_entered_sqft, form.discount_code)
        return quote.breakdown

    def calendar_invite(self, form: BookingForm, property_data: PropertyData,
                        breakdown: List[Dict[str, Any]], uid: Optional[str] = None) -> Optional[str]:
        if not form.selected_date or not form.selected_time:
            return None
        try:
            start, end = build_appointment_window(form.selected_date, form.selected_time, self.timezone)
        except ValidationFailedError as e:
            logger.warning(f"Skipping calendar invite: {e.message}")
            return None
        address = property_data.address or "Property Location"
        services = ", ".join(
            f"{item['name']} ({format_currency(item['price'])})" for item in breakdown if item.get("id") != "discount"
        )
        description = (
            f"Property service appointment with NJREAP\n\nServices: {services}\n\n"
            f"Property: {property_data.address or 'N/A'}"
        )
        return build_calendar_invite(
            start, end,
            summary=f"Property Service Appointment - {property_data.address or 'Property'}",
            description=description,
            location=address,
            uid=uid,
        )

    def render_service_email(self, first_name: str, form: BookingForm, property_data: PropertyData,
                             breakdown: List[Dict[str, Any]]):
        total = max(0, sum(item.get("price") or 0 for item in breakdown))
        county = property_data.county_data or {}
        living_area = display_living_area(form, property_data)
        has_appraisal = "appraisal" in form.selected_services

        rows = "".join(
            '<tr><td style="padding:10px 0;border-bottom:1px solid #e8e8e8;">'
            f'{_e(item["name"])}</td><td style="text-align:right;font-weight:600;color:{BRAND_COLOR};">'
            f'{_e(format_currency(item.get("price") or 0))}</td></tr>'
            for item in breakdown
        )
        content = [
            f'<p style="font-size:16px;line-height:1.6;color:#333;">Dear {_e(first_name)},<br><br>'
            f'Thank you for booking a service with {_e(BUSINESS_NAME)}. '
            "We've received your request and are excited to help with your property needs.</p>",
            _section("Service Summary",
                     f'<table style="width:100%;background:#f8f9fa;padding:16px;">{rows}</table>'
                     f'<div style="background:{BRAND_COLOR};color:white;padding:16px;text-align:center;">'
                     f'<p style="font-size:22px;margin:0;">Total: {_e(format_currency(total))}</p></div>'),
        ]
        details = [("Address", property_data.address), ("Living Area", living_area)]
        details += [pair for pair in property_summary_fields(property_data, form) if pair[0] not in EMAIL_SKIPPED_FIELDS]
        if county.get("COUNTY_NAME"):
            details.append(("County", county["COUNTY_NAME"]))
        property_cards = "".join(
            f"<tr>{''.join(_info_card(label, value) for label, value in details[i:i + 2])}</tr>"
            for i in range(0, len(details), 2)
        )
        content.append(_section("Property Information", f'<table style="width:100%;border-spacing:8px;">{property_cards}</table>'))

        if has_appraisal:
            cards = (
                f"<tr>{_info_card('Property Type', form.appraisal_property_type)}{_info_card('Intended Use', form.appraisal_intended_use)}</tr>"
                f"<tr>{_info_card('Report Type', form.appraisal_report_option)}{_info_card('Effective Date', form.appraisal_effective_date)}</tr>"
            )
            content.append(_section("Appraisal Details", f'<table style="width:100%;border-spacing:8px;">{cards}</table>'))

        appointment_date = None
        if form.selected_date:
            try:
                appointment_date = parse_date(form.selected_date).strftime("%m/%d/%Y")
            except ValidationFailedError:
                appointment_date = form.selected_date
            content.append(_section(
                "Scheduled Appointment",
                '<div style="background:#e3f2fd;padding:16px;border-left:4px solid #2196f3;">'
                f'<p style="font-size:17px;margin:8px 0;"><strong>Date:</strong> {_e(appointment_date)}</p>'
                f'<p style="font-size:17px;margin:8px 0;"><strong>Time:</strong> {_e(form.selected_time or "TBD")}</p>'
                '<p style="font-size:14px;">A calendar invite is attached to this email for your convenience.</p></div>',
            ))

        steps = "".join(f"<li>{_e(step)}</li>" for step in NEXT_STEPS)
        content.append(_section("Next Steps", f'<ul style="line-height:1.8;color:#333;">{steps}</ul>'))
        content.append(
            '<p style="font-size:14px;line-height:1.6;color:#666;">If you have any questions or need to make changes, '
            f'please contact us at <a href="mailto:{_e(self.staff_email)}" style="color:{BRAND_COLOR};">{_e(self.staff_email)}</a> '
            f'or call {_e(self.business_phone)}.</p>'
        )
        html = _page("Service Confirmation - NJREAP", "Thank You for Choosing NJREAP!",
                     "Your service request has been confirmed", "\n".join(content),
                     self.business_phone, self.staff_email)

        text_lines = [
            "Thank You for Choosing NJREAP!",
            "",
            f"Dear {first_name},",
            "",
            f"Thank you for booking a service with {BUSINESS_NAME}. We've received your request "
            "and are excited to help with your property needs.",
            "",
            "SERVICE SUMMARY:",
        ]
        text_lines += [f"- {item['name']} - {format_currency(item.get('price') or 0)}" for item in breakdown]
        text_lines += ["", f"Total: {format_currency(total)}", "", "PROPERTY INFORMATION:"]
        text_lines += [f"- {label}: {value if value not in (None, '') else 'N/A'}" for label, value in details]
        if has_appraisal:
            text_lines += [
                "", "APPRAISAL DETAILS:",
                f"- Property Type: {form.appraisal_property_type or 'N/A'}",
                f"- Intended Use: {form.appraisal_intended_use or 'N/A'}",
                f"- Report Type: {form.appraisal_report_option or 'N/A'}",
                f"- Effective Date: {form.appraisal_effective_date or 'N/A'}",
            ]
        if appointment_date:
            text_lines += ["", "SCHEDULED APPOINTMENT:", f"- Date: {appointment_date}",
                           f"- Time: {form.selected_time or 'TBD'}",
                           "A calendar invite is attached to this email."]
        text_lines += ["", "NEXT STEPS:"] + [f"- {step}" for step in NEXT_STEPS]
        text_lines += ["", f"Questions? Email {self.staff_email} or call {self.business_phone}."]
        return html, "\n".join(text_lines)

    def send_service_request(self, first_name: str, email: str, form: BookingForm,
                             property_data: PropertyData, breakdown: Optional[List[Dict[str, Any]]] = None,
                             invite_uid: Optional[str] = None) -> Dict[str, Any]:
        breakdown = breakdown if breakdown is not None else self.service_breakdown(form, property_data)
        html, text = self.render_service_email(first_name, form, property_data, breakdown)
        attachments = None
        invite = self.calendar_invite(form, property_data, breakdown, uid=invite_uid)
        if invite:
            attachments = [invite_attachment(invite)]
        result = self.email.send(
            to=email,
            subject=SERVICE_SUBJECT,
            html=html,
            text=text,
            bcc=[self.staff_email],
            attachments=attachments,
        )
        return {"success": True, "emailSent": result.message_id}

    # ------------------------------------------------------------ contact form

    def send_contact(self, request: ContactEmailRequest) -> Dict[str, Any]:
        full_name = f"{request.first_name} {request.last_name}".strip()
        staff_html = _page(
            "New Contact Form Submission", "New Contact Form Submission", f"From {full_name}",
            _section("Contact Details",
                     f"<p><strong>Name:</strong> {_e(full_name)}</p>"
                     f'<p><strong>Email:</strong> <a href="mailto:{_e(request.email)}">{_e(request.email)}</a></p>'
                     f"<p><strong>Phone:</strong> {_e(request.phone or 'Not provided')}</p>")
            + _section("Message", f'<p style="white-space:pre-wrap;">{_e(request.message)}</p>'),
            self.business_phone, self.staff_email,
        )
        staff_text = (
            f"New contact form submission\n\nName: {full_name}\nEmail: {request.email}\n"
            f"Phone: {request.phone or 'Not provided'}\n\nMessage:\n{request.message}"
        )
        staff_result = self.email.send(
            to=self.staff_email,
            subject=f"New Contact Form Submission from {full_name}",
            html=staff_html,
            text=staff_text,
            reply_to=request.email,
        )

        customer_html = _page(
            CUSTOMER_CONTACT_SUBJECT, "Thank You for Contacting Us", "We'll be in touch soon",
            f"<p>Dear {_e(request.first_name)},</p>"
            "<p>Thank you for reaching out to NJREAP. We have received your message and "
            "will get back to you within one business day.</p>"
            + _section("Your Message", f'<p style="white-space:pre-wrap;">{_e(request.message)}</p>'),
            self.business_phone, self.staff_email,
        )
        customer_text = (
            f"Dear {request.first_name},\n\nThank you for reaching out to NJREAP. We have received your "
            f"message and will get back to you within one business day.\n\nYour message:\n{request.message}\n\n"
            f"{BUSINESS_NAME}\n{self.staff_email} | {self.business_phone}"
        )
        customer_result = self.email.send(
            to=request.email,
            subject=CUSTOMER_CONTACT_SUBJECT,
            html=customer_html,
            text=customer_text,
        )
        return {
            "success": True,
            "contactFormSent": staff_result.message_id,
            "confirmationSent": customer_result.message_id,
        }

    # ----------------------------------------------------------- weekly report

    def send_weekly_report(self, report: Dict[str, Any], recipients: List[str]) -> Dict[str, Any]:
        report_date = datetime.now().strftime("%A, %B %d, %Y")
        rows = [
            ("New Jobs", report["newJobs"]),
            ("Weekly Revenue", format_currency(report["weeklyRevenue"])),
            ("Total Jobs", report["totalJobs"]),
        ]
        rows += [(f"{status.replace('_', ' ').title()} (this week)", count)
                 for status, count in sorted(report.get("statusCounts", {}).items())]
        items = "".join(
            f'<li style="padding:8px 0;border-bottom:1px solid #e2e8f0;"><strong>{_e(label)}:</strong> {_e(value)}</li>'
            for label, value in rows
        )
        recent = "".join(
            f"<li>{_e(job.get('client_name'))} - {_e((job.get('service_type') or 'unknown').replace('_', ' ').title())} "
            f"({_e(job.get('status'))})</li>"
            for job in report.get("jobs", [])[:10]
        )
        content = _section("This Week's Activity", f'<ul style="list-style:none;padding:0;">{items}</ul>')
        if recent:
            content += _section("New Jobs", f"<ul>{recent}</ul>")
        html = _page("Weekly Site Report", f"Weekly Site Report - {report_date}", "NJREAP admin summary",
                     content, self.business_phone, self.staff_email)
        text = "\n".join([f"Weekly Site Report - {report_date}", ""] + [f"{label}: {value}" for label, value in rows])
        result = self.email.send(to=recipients, subject=f"Weekly Site Report - {report_date}", html=html, text=text)
        return {"success": True, "emailSent": result.message_id, "recipients": recipients}
