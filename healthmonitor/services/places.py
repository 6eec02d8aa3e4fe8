"""
Google Places Service for Hospital Search
Finds hospitals near a point and returns them nearest first
"""
import logging
import math

import requests

from healthmonitor.errors import ExternalServiceError

logger = logging.getLogger(__name__)

PLACES_NEARBY_URL = 'https://places.googleapis.com/v1/places:searchNearby'
PLACES_FIELD_MASK = ','.join([
    'places.id',
    'places.displayName',
    'places.formattedAddress',
    'places.location',
    'places.rating',
    'places.userRatingCount',
    'places.nationalPhoneNumber',
    'places.websiteUri',
    'places.regularOpeningHours',
    'places.photos',
])
MAX_PLACES_RESULTS = 20
MAX_PHOTOS = 3
EARTH_RADIUS_KM = 6371.0


class PlacesError(ExternalServiceError):
    error = 'Hospital search failed'


class PlacesNotConfigured(PlacesError):
    status_code = 503


class PlacesAccessDenied(PlacesError):
    pass


class PlacesQuotaExceeded(PlacesError):
    status_code = 429


def haversine_km(lat1, lng1, lat2, lng2):
    """Great-circle distance in kilometres"""
    p1 = math.radians(lat1)
    p2 = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = math.sin(dlat / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def normalize_place(place, api_key):
    """Flatten a Places API (New) result into the hospital record the API returns"""
    location = place.get('location') or {}
    photos = [
        f"https://places.googleapis.com/v1/{photo['name']}/media?maxWidthPx=400&key={api_key}"
        for photo in (place.get('photos') or [])[:MAX_PHOTOS]
        if photo.get('name')
    ]
    hours = place.get('regularOpeningHours')
    address = place.get('formattedAddress') or 'Address not available'

    return {
        'id': place.get('id'),
        'name': (place.get('displayName') or {}).get('text') or 'Unknown Hospital',
        'address': address,
        'formatted_address': address,
        'location': {
            'lat': location.get('latitude', 0),
            'lng': location.get('longitude', 0)
        },
        'rating': place.get('rating'),
        'user_ratings_total': place.get('userRatingCount'),
        'phone': place.get('nationalPhoneNumber'),
        'website': place.get('websiteUri'),
        'opening_hours': {
            'open_now': hours.get('openNow', False),
            'periods': hours.get('periods', [])
        } if hours else None,
        'photos': photos
    }


def describe_search_error(exc):
    """Human-readable explanation shown to the user next to a retry action"""
    message = 'Failed to fetch nearby hospitals. '
    if isinstance(exc, PlacesNotConfigured):
        return message + 'Google Maps API key configuration issue. Please check your API settings.'
    if isinstance(exc, PlacesQuotaExceeded):
        return message + 'API quota exceeded. Please try again later.'
    if isinstance(exc, PlacesAccessDenied):
        return message + ('API access denied. Please check that your Google Maps API key '
                          'has Places API (New) enabled.')
    if isinstance(exc, PlacesError):
        return message + exc.message
    return message + 'Please check your connection and try again.'


class PlacesClient:
    """Thin client for the Places API (New) nearby search"""

    def __init__(self, api_key, timeout=10):
        self.api_key = api_key
        self.timeout = timeout

    def search_nearby(self, lat, lng, radius, keyword='hospital'):
        """Raw places around a point"""
        if not self.api_key:
            raise PlacesNotConfigured(
                'Google Maps API key not configured',
                details='Set GOOGLE_MAPS_API_KEY in the environment'
            )

        body = {
            'includedTypes': ['hospital'],
            'maxResultCount': MAX_PLACES_RESULTS,
            'locationRestriction': {
                'circle': {
                    'center': {'latitude': lat, 'longitude': lng},
                    'radius': radius
                }
            }
        }
        if keyword and keyword != 'hospital':
            body['textQuery'] = keyword

        headers = {
            'Content-Type': 'application/json',
            'X-Goog-Api-Key': self.api_key,
            'X-Goog-FieldMask': PLACES_FIELD_MASK
        }

        try:
            response = requests.post(PLACES_NEARBY_URL, json=body, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error('Places API request failed: %s', e)
            raise PlacesError(f'Could not reach Google Places API: {e}')

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code == 403:
            raise PlacesAccessDenied('Google Places API access denied')
        if response.status_code == 429:
            raise PlacesQuotaExceeded('Google Places API quota exceeded')
        if response.status_code >= 400:
            detail = (data.get('error') or {}).get('message') or 'Unknown error'
            logger.error('Places API error: %s %s', response.status_code, detail)
            raise PlacesError(f'Google Places API error: {response.status_code} - {detail}')

        places = data.get('places') or []
        logger.info('Places API returned %d results', len(places))
        return places

    def search_hospitals(self, lat, lng, radius=15000, keyword='hospital', limit=MAX_PLACES_RESULTS):
        """Normalized hospitals with a ``distance`` in km, nearest first"""
        hospitals = []
        for place in self.search_nearby(lat, lng, radius, keyword=keyword or 'hospital'):
            hospital = normalize_place(place, self.api_key)
            hospital['distance'] = round(haversine_km(
                lat, lng, hospital['location']['lat'], hospital['location']['lng']
            ), 2)
            hospitals.append(hospital)

        hospitals.sort(key=lambda h: h['distance'])
        return hospitals[:limit]
