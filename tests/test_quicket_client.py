"""Unit tests for QuicketClient."""
from unittest.mock import Mock, call

import pytest
import responses
from requests.exceptions import ConnectionError, RequestException, Timeout

from scraper.quicket_client import QuicketClient

URL = QuicketClient.BASE_URL


def page_body(events, pages=1):
    return {
        'results': events,
        'pageSize': 100,
        'pages': pages,
        'records': len(events),
        'statusCode': 200
    }


@pytest.fixture
def sleep():
    return Mock()


@pytest.fixture
def client(sleep):
    return QuicketClient(api_key='test-key', page_size=100, timeout=30, sleep=sleep)


class TestQuicketClient:
    """Test cases for QuicketClient class."""

    def test_page_size_is_clamped(self):
        assert QuicketClient('k', page_size=5).page_size == 20
        assert QuicketClient('k', page_size=500).page_size == 200
        assert QuicketClient('k', page_size=80).page_size == 80

    @responses.activate
    def test_fetch_page_sends_query_parameters(self, client):
        responses.add(responses.GET, URL, json=page_body([{'id': 1}]), status=200)

        body = client.fetch_page(3)

        assert body['results'] == [{'id': 1}]
        request = responses.calls[0].request
        assert 'api_key=test-key' in request.url
        assert 'pageSize=100' in request.url
        assert 'page=3' in request.url

    @responses.activate
    def test_fetch_all_events_concatenates_pages(self, client, sleep):
        responses.add(responses.GET, URL, json=page_body([{'id': 1}, {'id': 2}], pages=3))
        responses.add(responses.GET, URL, json=page_body([{'id': 3}], pages=3))
        responses.add(responses.GET, URL, json=page_body([{'id': 4}], pages=3))

        events = client.fetch_all_events()

        assert [e['id'] for e in events] == [1, 2, 3, 4]
        assert len(responses.calls) == 3
        assert 'page=1' in responses.calls[0].request.url
        assert 'page=3' in responses.calls[2].request.url
        # Paced between pages only, never before the first
        assert sleep.call_args_list == [call(0.5), call(0.5)]

    @responses.activate
    def test_single_page_does_not_sleep(self, client, sleep):
        responses.add(responses.GET, URL, json=page_body([{'id': 1}], pages=1))

        client.fetch_all_events()

        sleep.assert_not_called()

    @responses.activate
    def test_pagination_stops_at_page_cap(self, client):
        for page in range(QuicketClient.MAX_PAGES + 5):
            responses.add(responses.GET, URL, json=page_body([{'id': page}], pages=100))

        events = client.fetch_all_events()

        assert len(responses.calls) == QuicketClient.MAX_PAGES
        assert len(events) == QuicketClient.MAX_PAGES

    @responses.activate
    def test_missing_results_treated_as_empty(self, client):
        responses.add(responses.GET, URL, json={'pages': 1, 'statusCode': 200})

        assert client.fetch_all_events() == []

    @pytest.mark.parametrize('pages', ['abc', None, [], -2])
    @responses.activate
    def test_bad_page_count_treated_as_single_page(self, client, sleep, pages):
        responses.add(responses.GET, URL, json=page_body([{'id': 1}], pages=pages))

        events = client.fetch_all_events()

        assert events == [{'id': 1}]
        assert len(responses.calls) == 1
        sleep.assert_not_called()

    @responses.activate
    def test_numeric_string_page_count_is_followed(self, client):
        responses.add(responses.GET, URL, json=page_body([{'id': 1}], pages='2'))
        responses.add(responses.GET, URL, json=page_body([{'id': 2}], pages='2'))

        events = client.fetch_all_events()

        assert [e['id'] for e in events] == [1, 2]
        assert len(responses.calls) == 2

    @responses.activate
    def test_non_object_body_treated_as_empty(self, client):
        responses.add(responses.GET, URL, json=[{'id': 1}])

        assert client.fetch_all_events() == []
        assert len(responses.calls) == 1

    @responses.activate
    def test_non_list_results_treated_as_empty(self, client):
        responses.add(responses.GET, URL, json={'results': {'id': 1}, 'pages': 1})

        assert client.fetch_all_events() == []

    @responses.activate
    def test_retry_succeeds_after_failures(self, client, sleep):
        responses.add(responses.GET, URL, body='Server Error', status=500)
        responses.add(responses.GET, URL, body=ConnectionError('reset'))
        responses.add(responses.GET, URL, json=page_body([{'id': 1}]))

        body = client.fetch_page(1)

        assert body['results'] == [{'id': 1}]
        assert len(responses.calls) == 3
        assert sleep.call_args_list == [call(2), call(5)]

    @responses.activate
    def test_all_retries_fail(self, client, sleep):
        for _ in range(3):
            responses.add(responses.GET, URL, body='Server Error', status=500)

        with pytest.raises(RequestException):
            client.fetch_page(1)

        assert len(responses.calls) == 3
        assert sleep.call_args_list == [call(2), call(5)]

    @responses.activate
    def test_timeout_exhausts_retries(self, client):
        for _ in range(3):
            responses.add(responses.GET, URL, body=Timeout('Request timed out'))

        with pytest.raises(Timeout):
            client.fetch_page(1)

        assert len(responses.calls) == 3

    @responses.activate
    def test_invalid_json_is_retried(self, client):
        responses.add(responses.GET, URL, body='<html>not json</html>', status=200)
        responses.add(responses.GET, URL, json=page_body([{'id': 7}]))

        assert client.fetch_page(1)['results'] == [{'id': 7}]

    @responses.activate
    def test_failure_mid_pagination_raises(self, client):
        responses.add(responses.GET, URL, json=page_body([{'id': 1}], pages=2))
        for _ in range(3):
            responses.add(responses.GET, URL, body='Bad Gateway', status=502)

        with pytest.raises(RequestException):
            client.fetch_all_events()

    @responses.activate
    def test_rate_limit_honours_retry_after(self, client, sleep):
        responses.add(responses.GET, URL, status=429, headers={'Retry-After': '7'})
        responses.add(responses.GET, URL, json=page_body([{'id': 1}]))

        body = client.fetch_page(1)

        assert body['results'] == [{'id': 1}]
        sleep.assert_called_once_with(7)

    @responses.activate
    def test_rate_limit_without_hint_uses_default(self, client, sleep):
        responses.add(responses.GET, URL, status=429)
        responses.add(responses.GET, URL, json=page_body([]))

        client.fetch_page(1)

        sleep.assert_called_once_with(QuicketClient.DEFAULT_RETRY_AFTER)

    @responses.activate
    def test_rate_limit_does_not_use_attempts(self, client, sleep):
        for _ in range(5):
            responses.add(responses.GET, URL, status=429, headers={'Retry-After': '1'})
        responses.add(responses.GET, URL, body='Server Error', status=500)
        responses.add(responses.GET, URL, body='Server Error', status=500)
        responses.add(responses.GET, URL, json=page_body([{'id': 1}]))

        body = client.fetch_page(1)

        assert body['results'] == [{'id': 1}]
        assert len(responses.calls) == 8
        assert sleep.call_args_list == [call(1)] * 5 + [call(2), call(5)]
