"""
Request-level tests for login, buses, the booking flow, payment and the booking list.
"""

from unittest.mock import patch

import pytest
from django.contrib.messages import get_messages
from django.urls import reverse

from apps.bookings.utils import SNAPSHOT_SESSION_KEY
from apps.bookings.workflow import DRAFT_SESSION_KEY, WORKFLOW_SESSION_KEY
from apps.gateway.exceptions import HttpError, NetworkError
from apps.gateway.schemas import BookingStatus
from apps.payments.views import PAYMENT_IN_FLIGHT_KEY
from apps.users.auth import SESSION_USER_KEY

from .conftest import make_booking, make_seat


def message_texts(response):
    return [str(message) for message in get_messages(response.wsgi_request)]


class TestLogin:
    """Test logging in and access control."""

    def test_anonymous_redirected_to_login(self, client):
        """Test pages require a logged-in user."""
        response = client.get(reverse('buses:bus_list'))
        assert response.status_code == 302
        assert response.url.startswith(reverse('users:login'))

    def test_function_views_require_backend_login(self, client):
        """Test decorated views send anonymous visitors to our login page."""
        response = client.get(reverse('payments:payment_success'))
        assert response.status_code == 302
        assert response.url == f"{reverse('users:login')}?next=%2Fpayments%2Fsuccess%2F"

    def test_login_stores_user(self, client, admin_user):
        """Test a successful login remembers the user in the session."""
        with patch('apps.users.views.BusBookingAPI') as api_class:
            api_class.return_value.login.return_value = admin_user
            api_class.return_value.export_cookies.return_value = {'JSESSIONID': 'abc'}

            response = client.post(reverse('users:login'), {
                'email': 'Admin@Example.com', 'password': 'secret',
            })

        assert response.status_code == 302
        assert response.url == reverse('buses:bus_list')
        api_class.return_value.login.assert_called_once_with('admin@example.com', 'secret')
        assert client.session[SESSION_USER_KEY]['id'] == 1

    def test_bad_credentials(self, client):
        """Test a rejected login shows a friendly error."""
        with patch('apps.users.views.BusBookingAPI') as api_class:
            api_class.return_value.login.side_effect = HttpError(401, 'Invalid credentials')

            response = client.post(reverse('users:login'), {
                'email': 'asha@example.com', 'password': 'wrong',
            })

        assert response.status_code == 200
        assert 'Invalid email or password.' in message_texts(response)
        assert SESSION_USER_KEY not in client.session

    def test_logout(self, user_client):
        """Test logging out forgets the user."""
        response = user_client.post(reverse('users:logout'))
        assert response.status_code == 302
        assert SESSION_USER_KEY not in user_client.session

    def test_users_page_is_admin_only(self, api, user_client):
        """Test regular users cannot open user administration."""
        response = user_client.get(reverse('users:user_list'))
        assert response.status_code == 302
        assert response.url == reverse('buses:bus_list')

    def test_users_page_lists_users(self, api, admin_client):
        """Test admins see the backend's users."""
        response = admin_client.get(reverse('users:user_list'))
        assert response.status_code == 200
        assert b'asha@example.com' in response.content


class TestBuses:
    """Test bus pages."""

    def test_bus_list(self, api, user_client):
        """Test the bus list shows backend buses."""
        response = user_client.get(reverse('buses:bus_list'))
        assert response.status_code == 200
        assert b'City Express' in response.content
        api.list_buses.assert_called_once_with()

    def test_bus_search(self, api, user_client, bus):
        """Test search terms go to the search endpoint."""
        api.search_buses.return_value = [bus]

        response = user_client.get(reverse('buses:bus_list'), {'route': 'Pune', 'name': ''})

        assert response.status_code == 200
        api.search_buses.assert_called_once_with(route='Pune')
        api.list_buses.assert_not_called()

    def test_bus_list_failure(self, api, user_client):
        """Test a backend failure shows a banner and an empty list."""
        api.list_buses.side_effect = NetworkError('refused')

        response = user_client.get(reverse('buses:bus_list'))

        assert response.status_code == 200
        assert 'Failed to load buses.' in message_texts(response)

    def test_bus_detail_seat_map(self, api, user_client):
        """Test the bus page shows its seats."""
        response = user_client.get(reverse('buses:bus_detail', args=[3]))
        assert response.status_code == 200
        assert b'R05' in response.content
        assert b'Seat E09 - ELDER - AVAILABLE' in response.content

    def test_create_bus_admin_only(self, api, user_client):
        """Test regular users cannot create buses."""
        response = user_client.post(reverse('buses:bus_create'), {})
        assert response.status_code == 302
        api.create_bus.assert_not_called()

    def test_create_bus(self, api, admin_client, bus):
        """Test the date picker value reaches the backend as a date."""
        api.create_bus.return_value = bus

        response = admin_client.post(reverse('buses:bus_create'), {
            'name': 'City Express',
            'route': 'Pune - Mumbai',
            'departure_date': '2025-12-25',
            'departure_time': '08:00',
            'arrival_time': '11:30',
            'total_seats': '40',
            'available_seats': '40',
            'price': '500',
        })

        assert response.status_code == 302
        assert response.url == reverse('buses:bus_detail', args=[3])
        sent = api.create_bus.call_args.args[0]
        assert sent.to_payload()['departureDate'] == '25-12-2025'

    def test_seat_layout_api_echoes_generation(self, api, user_client):
        """Test the JSON seat map carries the caller's generation."""
        response = user_client.get(
            reverse('buses:seat_layout_api', args=[3]),
            {'seat_type': 'ELDER', 'seat': 'E09', 'generation': '5'},
        )

        data = response.json()
        assert data['success'] is True
        assert data['generation'] == '5'
        assert data['layout']['selected_seat_number'] == 'E09'
        assert [len(row) for row in data['layout']['rows']] == [4, 4, 4]

    def test_seat_layout_api_failure(self, api, user_client):
        """Test a backend failure is reported in the JSON body."""
        api.list_seats.side_effect = NetworkError('refused')

        response = user_client.get(reverse('buses:seat_layout_api', args=[3]), {'generation': '2'})

        assert response.status_code == 502
        assert response.json()['success'] is False


class TestBookingFlow:
    """Test booking a seat from selection to payment."""

    def start(self, client, bus_id=3):
        return client.get(reverse('bookings:add_booking'), {'bus_id': bus_id})

    def choose_seat(self, client, seat_number):
        return client.post(reverse('bookings:booking_select'), {
            'action': 'select_seat', 'value': seat_number,
        })

    def submit(self, client):
        return client.post(reverse('bookings:booking_select'), {
            'submit': '1', 'booking_date': '2025-06-01T10:30',
        })

    def test_start_shows_selection(self, api, user_client):
        """Test starting the flow lands on the selection page."""
        response = self.start(user_client)
        assert response.status_code == 302
        assert response.url == reverse('bookings:booking_select')

        response = user_client.get(response.url)
        assert response.status_code == 200
        assert b'City Express' in response.content

    def test_start_failure(self, api, user_client):
        """Test a failing bus list shows the errored page."""
        api.list_buses.side_effect = NetworkError('refused')

        response = self.start(user_client)
        response = user_client.get(response.url)

        assert response.status_code == 200
        assert b'Start again' in response.content

    def test_book_and_pay(self, api, user_client):
        """Test booking R05 on bus 3 creates a CONFIRMED booking after payment."""
        self.start(user_client)
        self.choose_seat(user_client, 'R05')

        response = self.submit(user_client)

        assert response.status_code == 302
        assert response.url == reverse('payments:confirm_payment')
        api.create_booking.assert_not_called()
        draft = user_client.session[DRAFT_SESSION_KEY]
        assert draft['seat_number'] == 'R05'
        assert draft['status'] == 'PENDING'

        response = user_client.get(reverse('payments:confirm_payment'))
        assert response.status_code == 200
        assert b'R05' in response.content

        api.create_booking.return_value = make_booking(99, seat_number='R05')
        response = user_client.post(reverse('payments:confirm_payment'), {'draft_id': draft['draft_id']})

        assert response.status_code == 302
        assert response.url == reverse('payments:payment_success')
        payload = api.create_booking.call_args.args[0]
        assert payload.status == BookingStatus.CONFIRMED
        assert payload.user_id == 7
        assert DRAFT_SESSION_KEY not in user_client.session
        assert WORKFLOW_SESSION_KEY not in user_client.session

        response = user_client.get(response.url)
        assert response.status_code == 200
        assert b'http-equiv="refresh"' in response.content

    def test_ineligible_seat_type_blocked(self, api, user_client):
        """Test a regular user's elder seat is refused at submit."""
        self.start(user_client)
        user_client.post(reverse('bookings:booking_select'), {
            'action': 'select_seat_type', 'value': 'ELDER',
        })
        self.choose_seat(user_client, 'E09')

        response = self.submit(user_client)

        assert response.status_code == 200
        assert any('not eligible for elderly priority seating' in text for text in message_texts(response))
        assert DRAFT_SESSION_KEY not in user_client.session

    def test_overlapping_bus_changes_keep_the_latest(self, api, user_client, bus):
        """Test a slow seat load cannot overwrite a bus chosen after it started."""
        api.list_buses.return_value = [bus, bus.model_copy(update={'id': 4, 'name': 'Night Rider'})]
        user_client.get(reverse('bookings:add_booking'))
        loaded = []

        def list_seats(bus_id):
            loaded.append(bus_id)
            if bus_id == 3:
                # The user picks bus 4 while bus 3's seats are still loading.
                user_client.post(reverse('bookings:booking_select'), {'action': 'select_bus', 'value': '4'})
            return [make_seat(1, f'S{bus_id}', bus_id=bus_id)]

        api.list_seats.side_effect = list_seats

        user_client.post(reverse('bookings:booking_select'), {'action': 'select_bus', 'value': '3'})

        state = user_client.session[WORKFLOW_SESSION_KEY]
        assert loaded == [3, 4]
        assert state['bus_id'] == 4
        assert [seat['seatNumber'] for seat in state['seats']] == ['S4']

    def test_unknown_action_is_reported(self, api, user_client):
        """Test a malformed selection change is not dropped silently."""
        self.start(user_client)

        response = user_client.post(reverse('bookings:booking_select'), {'action': 'fly', 'value': '1'})

        assert response.status_code == 302
        assert any('Select a valid choice' in text for text in message_texts(response))

    def test_submit_without_seat(self, api, user_client):
        """Test submitting with no seat keeps the user on the page."""
        self.start(user_client)
        response = self.submit(user_client)

        assert response.status_code == 200
        assert 'Please select a seat.' in message_texts(response)

    def test_payment_failure_keeps_draft(self, api, user_client):
        """Test a failed confirmation can be retried."""
        self.start(user_client)
        self.choose_seat(user_client, 'R05')
        self.submit(user_client)
        draft = user_client.session[DRAFT_SESSION_KEY]
        api.create_booking.side_effect = NetworkError('refused')

        response = user_client.post(reverse('payments:confirm_payment'), {'draft_id': draft['draft_id']})

        assert response.status_code == 200
        assert 'Failed to confirm payment. Please try again.' in message_texts(response)
        assert user_client.session[DRAFT_SESSION_KEY]['draft_id'] == draft['draft_id']
        assert PAYMENT_IN_FLIGHT_KEY not in user_client.session

    def test_unexpected_payment_error_releases_draft(self, api, user_client):
        """Test a crash while confirming still lets the user retry."""
        self.start(user_client)
        self.choose_seat(user_client, 'R05')
        self.submit(user_client)
        draft_id = user_client.session[DRAFT_SESSION_KEY]['draft_id']
        api.create_booking.side_effect = RuntimeError('unexpected')

        with pytest.raises(RuntimeError):
            user_client.post(reverse('payments:confirm_payment'), {'draft_id': draft_id})

        assert PAYMENT_IN_FLIGHT_KEY not in user_client.session

        api.create_booking.side_effect = None
        api.create_booking.return_value = make_booking(99, seat_number='R05')
        response = user_client.post(reverse('payments:confirm_payment'), {'draft_id': draft_id})
        assert response.url == reverse('payments:payment_success')

    def test_payment_in_flight_not_sent_twice(self, api, user_client):
        """Test a second confirmation while one is running sends nothing."""
        self.start(user_client)
        self.choose_seat(user_client, 'R05')
        self.submit(user_client)
        session = user_client.session
        draft_id = session[DRAFT_SESSION_KEY]['draft_id']
        session[PAYMENT_IN_FLIGHT_KEY] = draft_id
        session.save()

        response = user_client.post(reverse('payments:confirm_payment'), {'draft_id': draft_id})

        assert response.status_code == 200
        api.create_booking.assert_not_called()

    def test_confirm_without_draft(self, api, user_client):
        """Test the payment page without a pending booking goes back to buses."""
        response = user_client.get(reverse('payments:confirm_payment'))
        assert response.status_code == 302
        assert response.url == reverse('buses:bus_list')


class TestBookingList:
    """Test listing, filtering and cancelling bookings."""

    @pytest.fixture
    def listed(self, api):
        api.list_user_bookings.return_value = [
            make_booking(40, BookingStatus.CONFIRMED),
            make_booking(41, BookingStatus.PENDING),
            make_booking(42, BookingStatus.CONFIRMED),
        ]
        return api

    def test_user_sees_own_bookings(self, listed, user_client):
        """Test the list loads the current user's bookings."""
        response = user_client.get(reverse('bookings:booking_list'))

        assert response.status_code == 200
        listed.list_user_bookings.assert_called_once_with(7)
        assert [b.id for b in response.context['bookings']] == [40, 41, 42]

    def test_filter_reuses_loaded_list(self, listed, user_client):
        """Test changing the filter does not refetch."""
        user_client.get(reverse('bookings:booking_list'))

        response = user_client.get(reverse('bookings:booking_list'), {'status': 'CONFIRMED'})

        assert [b.id for b in response.context['bookings']] == [40, 42]
        assert listed.list_user_bookings.call_count == 1

    def test_fetch_failure(self, api, user_client):
        """Test a failed fetch shows a banner."""
        api.list_user_bookings.side_effect = NetworkError('refused')

        response = user_client.get(reverse('bookings:booking_list'))

        assert 'Failed to fetch bookings. Please try again later.' in message_texts(response)

    def test_cancel_booking(self, listed, user_client):
        """Test cancelling 42 patches it in the loaded list."""
        user_client.get(reverse('bookings:booking_list'))

        response = user_client.get(reverse('bookings:cancel_booking', args=[42]))
        assert response.status_code == 200

        response = user_client.post(reverse('bookings:cancel_booking', args=[42]), {
            'confirm': 'on', 'status': 'all',
        })

        assert response.status_code == 302
        listed.cancel_booking.assert_called_once_with(42)
        statuses = {b['id']: b['status'] for b in user_client.session[SNAPSHOT_SESSION_KEY]}
        assert statuses == {40: 'CONFIRMED', 41: 'PENDING', 42: 'CANCELLED'}

    def test_cancel_failure(self, listed, user_client):
        """Test a failed cancellation leaves the list untouched."""
        user_client.get(reverse('bookings:booking_list'))
        listed.cancel_booking.side_effect = HttpError(500, 'boom')

        response = user_client.post(reverse('bookings:cancel_booking', args=[42]), {'confirm': 'on'})

        assert 'Failed to cancel booking. Please try again.' in message_texts(response)
        statuses = {b['id']: b['status'] for b in user_client.session[SNAPSHOT_SESSION_KEY]}
        assert statuses[42] == 'CONFIRMED'

    def test_transfer_not_available(self, listed, user_client):
        """Test a valid transfer request reports it is not available."""
        response = user_client.post(reverse('bookings:transfer_seat'), {
            'booking_id': '40', 'recipient_email': 'friend@example.com',
        })

        assert response.status_code == 200
        assert any('not available yet' in text for text in message_texts(response))

    def test_transfer_requires_fields(self, listed, user_client):
        """Test a transfer without a booking is refused."""
        response = user_client.post(reverse('bookings:transfer_seat'), {'recipient_email': ''})

        assert 'Please select a booking and enter recipient email.' in message_texts(response)
