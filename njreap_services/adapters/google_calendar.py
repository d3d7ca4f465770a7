import hashlib
import logging
import os
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..exceptions import CalendarError, ConfigurationError

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"
SCOPES = ['https://www.googleapis.com/auth/calendar']

# socket timeouts and connection resets surface as OSError subclasses
NETWORK_ERRORS = (OSError, httplib2.HttpLib2Error)


def event_id_for_key(idempotency_key: str) -> str:
    """Calendar event ids allow base32hex characters; a hex digest qualifies."""
    return hashlib.sha1(idempotency_key.encode("utf-8")).hexdigest()


def obtain_refresh_token(client_secrets_path: str, port: int = 0) -> str:
    """Run the installed-app consent flow once and return the refresh token for GOOGLE_REFRESH_TOKEN."""
    flow = InstalledAppFlow.from_client_secrets_file(client_secrets_path, SCOPES)
    creds = flow.run_local_server(port=port, access_type="offline", prompt="consent")
    return creds.refresh_token


class CalendarAdapter:
    def __init__(self, client_id: Optional[str] = None, client_secret: Optional[str] = None,
                 refresh_token: Optional[str] = None, calendar_id: Optional[str] = None,
                 timezone: str = "America/New_York", service=None):
        self.client_id = client_id or os.getenv('GOOGLE_CLIENT_ID')
        self.client_secret = client_secret or os.getenv('GOOGLE_CLIENT_SECRET')
        self.refresh_token = refresh_token or os.getenv('GOOGLE_REFRESH_TOKEN')
        self.calendar_id = calendar_id or os.getenv('GOOGLE_CALENDAR_ID', 'primary')
        self.timezone = timezone
        self.service = service
        self.enabled = service is not None or all((self.client_id, self.client_secret, self.refresh_token))
        if not self.enabled:
            logger.warning("Google Calendar disabled: missing GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET/GOOGLE_REFRESH_TOKEN")

    def _authenticate(self):
        """Exchange the refresh token for an access token and build the API client."""
        if self.service is not None:
            return self.service
        if not self.enabled:
            raise ConfigurationError("Google Calendar credentials are not configured")
        creds = Credentials(
            token=None,
            refresh_token=self.refresh_token,
            client_id=self.client_id,
            client_secret=self.client_secret,
            token_uri=TOKEN_URI,
            scopes=SCOPES,
        )
        try:
            creds.refresh(Request())
        except (RefreshError, TransportError) as e:
            logger.error(f"Google Calendar auth failed: {e}")
            raise CalendarError("Failed to authenticate with Google Calendar", status_code=500, response=str(e))
        self.service = build('calendar', 'v3', credentials=creds, cache_discovery=False)
        logger.info("Google Calendar service initialized")
        return self.service

    def create_event(self, summary: str, start_time: datetime, end_time: datetime,
                     description: str = "", location: str = "", attendees: List[str] = None,
                     event_id: Optional[str] = None) -> Dict[str, Any]:
        """Create a calendar event. A repeated event_id returns the existing event."""
        service = self._authenticate()
        event = {
            'summary': summary,
            'description': description,
            'location': location,
            'start': {
                'dateTime': start_time.isoformat(),
                'timeZone': self.timezone,
            },
            'end': {
                'dateTime': end_time.isoformat(),
                'timeZone': self.timezone,
            },
        }
        if attendees:
            event['attendees'] = [{'email': email} for email in attendees]
        if event_id:
            event['id'] = event_id
        try:
            created = service.events().insert(calendarId=self.calendar_id, body=event).execute()
            logger.info(f"Event created: {created.get('htmlLink')}")
            return created
        except HttpError as error:
            if event_id and getattr(error.resp, 'status', None) == 409:
                logger.info(f"Event {event_id} already exists, returning existing event")
                return self.get_event(event_id)
            logger.error(f"Error creating event: {error}")
            raise CalendarError("Failed to create calendar event", status_code=500, response=str(error))
        except NETWORK_ERRORS as error:
            logger.error(f"Network error creating event: {error}")
            raise CalendarError("Failed to create calendar event", status_code=500, response=str(error))

    def get_event(self, event_id: str) -> Dict[str, Any]:
        service = self._authenticate()
        try:
            return service.events().get(calendarId=self.calendar_id, eventId=event_id).execute()
        except (HttpError, *NETWORK_ERRORS) as error:
            logger.error(f"Error fetching event {event_id}: {error}")
            raise CalendarError("Failed to fetch calendar event", status_code=500, response=str(error))

    def get_events(self, start_date: datetime, end_date: datetime,
                   max_results: int = 100) -> List[Dict[str, Any]]:
        service = self._authenticate()
        try:
            events_result = service.events().list(
                calendarId=self.calendar_id,
                timeMin=start_date.isoformat(),
                timeMax=end_date.isoformat(),
                maxResults=max_results,
                singleEvents=True,
                orderBy='startTime'
            ).execute()
            return events_result.get('items', [])
        except (HttpError, *NETWORK_ERRORS) as error:
            logger.error(f"Error fetching events: {error}")
            raise CalendarError("Failed to fetch calendar availability", status_code=500, response=str(error))

    def get_busy_slots(self, day: date, start_hour: int = 9, end_hour: int = 18) -> List[Dict[str, str]]:
        """Busy intervals within business hours on the given day."""
        tz = ZoneInfo(self.timezone)
        window_start = datetime.combine(day, time(start_hour), tzinfo=tz)
        window_end = datetime.combine(day, time(end_hour), tzinfo=tz)
        slots = []
        for item in self.get_events(window_start, window_end):
            start = item.get('start', {})
            end = item.get('end', {})
            # all-day events carry 'date' instead of 'dateTime'
            slots.append({
                'start': start.get('dateTime') or start.get('date'),
                'end': end.get('dateTime') or end.get('date'),
            })
        return slots
