"""
Location providers
Resolve where a hospital search should be centred: coordinates typed in by
the user (or reported by the device), or a free-text address.
"""
import logging
from abc import ABC, abstractmethod

import requests

from healthmonitor.errors import ExternalServiceError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

GEOCODE_URL = 'https://maps.googleapis.com/maps/api/geocode/json'


class LocationNotFound(NotFoundError):
    error = 'Location not found'


class LocationProvider(ABC):

    @abstractmethod
    def locate(self):
        """Return (lat, lng)"""


class ManualLocationProvider(LocationProvider):
    """Coordinates supplied directly"""

    def __init__(self, lat, lng):
        try:
            self.lat = float(lat)
            self.lng = float(lng)
        except (TypeError, ValueError):
            raise ValidationError('Latitude and longitude must be numbers')
        if not -90 <= self.lat <= 90 or not -180 <= self.lng <= 180:
            raise ValidationError('Latitude or longitude out of range')

    def locate(self):
        return self.lat, self.lng


class Geocoder:
    """Free-text address to coordinates via the Google Geocoding API"""

    def __init__(self, api_key, timeout=10):
        self.api_key = api_key
        self.timeout = timeout

    def geocode(self, address):
        """Return (lat, lng, formatted_address) for the best match"""
        params = {'address': address, 'key': self.api_key}
        try:
            response = requests.get(GEOCODE_URL, params=params, timeout=self.timeout)
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error('Geocoding request failed: %s', e)
            raise ExternalServiceError(f'Geocoding failed: {e}')

        status = data.get('status')
        results = data.get('results') or []
        if status != 'OK' or not results:
            logger.info('Geocoding "%s" failed with status %s', address, status)
            raise LocationNotFound(
                'Could not find the specified location',
                details='Please try a different search term.'
            )

        best = results[0]
        location = best['geometry']['location']
        return location['lat'], location['lng'], best.get('formatted_address', address)


class GeocodingLocationProvider(LocationProvider):

    def __init__(self, address, geocoder):
        address = (address or '').strip()
        if not address:
            raise ValidationError('Address is required')
        self.address = address
        self.geocoder = geocoder
        self.formatted_address = None

    def locate(self):
        lat, lng, self.formatted_address = self.geocoder.geocode(self.address)
        return lat, lng
