from __future__ import annotations

from datetime import timedelta

import pytest

from accounts.utils import create_jwt_token, decode_jwt_token, token_for_user

pytestmark = pytest.mark.django_db


def _get(api_client, token):
    return api_client.get('/api/auctions/', HTTP_AUTHORIZATION=f'Bearer {token}')


def test_token_carries_user_identity(bidder_a):
    payload = decode_jwt_token(token_for_user(bidder_a))

    assert payload['user_id'] == bidder_a.pk
    assert payload['phone_number'] == bidder_a.phone_number


def test_valid_bearer_token_authenticates(api_client, bidder_a):
    response = _get(api_client, token_for_user(bidder_a))

    assert response.status_code == 200
    assert response.data['count'] == 0


def test_expired_token_rejected(api_client, bidder_a):
    token = create_jwt_token({'user_id': bidder_a.pk}, expires_in=timedelta(seconds=-1))

    response = _get(api_client, token)

    assert response.status_code == 401
    assert response.data['detail'] == 'Token expired'


def test_garbage_token_rejected(api_client):
    response = _get(api_client, 'not-a-jwt')

    assert response.status_code == 401
    assert response.data['detail'] == 'Invalid token'


def test_token_for_unknown_user_rejected(api_client):
    response = _get(api_client, create_jwt_token({'user_id': 987654}))

    assert response.status_code == 401
    assert response.data['detail'] == 'User not found'


def test_inactive_user_rejected(api_client, bidder_a):
    bidder_a.is_active = False
    bidder_a.save(update_fields=['is_active'])

    response = _get(api_client, token_for_user(bidder_a))

    assert response.status_code == 401


def test_other_schemes_fall_through_to_unauthenticated(api_client):
    response = api_client.get('/api/auctions/', HTTP_AUTHORIZATION='Basic abc')

    assert response.status_code == 401
