"""Reverse geocoding across Chinese and international providers.

Each provider adapter turns coordinates into a request URL and turns the
provider's native JSON into `AddressComponents`; formatting never looks at
provider field names. Provider selection for ``auto`` mode is driven by the
rough region table in `core.services.regions`.
"""

from __future__ import annotations

from collections.abc import Iterable
import json
from typing import Any
from urllib.parse import quote

from loguru import logger

from core.errors import GeocodingError
from core.models import AUTO_PROVIDER, AddressComponents, GeocodeRequest, Granularity, ProviderId
from core.services.address_format import (
    components_have_cjk,
    format_international_address,
    has_cjk,
    trim_address_by_level,
)
from core.services.interfaces import JsonTransport
from core.services.regions import is_domestic_location, is_in_china
from infrastructure.http_client import JsonHttpClient

DOMESTIC_PREFERENCE = (
    ProviderId.AMAP,
    ProviderId.TENCENT,
    ProviderId.TIANDITU,
    ProviderId.QWEATHER,
)
FOREIGN_PREFERENCE = (ProviderId.MAPBOX, ProviderId.MAPTILER, ProviderId.GOOGLE)


def _text(value: Any) -> str:
    """Provider string field, treating lists/None (Amap's "no data") as empty."""
    if value is None or isinstance(value, (list, dict)):
        return ""
    return str(value)


class GeocodingProvider:
    """Uniform adapter interface: build a URL, parse a native response.

    Subclasses set `provider_id` and `display_name` and implement
    `build_url` and `parse_response`. `parse_response` returns None when the
    provider reports success with no data, and raises `GeocodingError` on the
    provider's failure signal.
    """

    provider_id: ProviderId
    display_name: str = ""
    # "domestic", "international" or "detect" (CJK detection on the result)
    address_style = "domestic"

    def build_url(self, lat: float, lng: float, key: str) -> str:
        raise NotImplementedError

    def parse_response(self, payload: Any) -> AddressComponents | None:
        raise NotImplementedError

    def is_cjk_result(self, components: AddressComponents) -> bool:
        return components_have_cjk(components)

    def format_address(
        self, components: AddressComponents, level: Granularity, hide_province: bool
    ) -> str:
        style = self.address_style
        if style == "detect":
            style = "domestic" if self.is_cjk_result(components) else "international"
        if style == "domestic":
            return trim_address_by_level(components, level, hide_province)
        return format_international_address(components, level, hide_province)

    def reverse_geocode(
        self,
        transport: JsonTransport,
        lat: float,
        lng: float,
        level: Granularity,
        key: str,
        hide_province: bool = False,
    ) -> str:
        """Resolve one point; empty string when unkeyed or when there is no data."""
        if not key:
            return ""
        payload = transport.get_json(self.build_url(lat, lng, key))
        if not isinstance(payload, dict):
            raise GeocodingError(
                f"{self.display_name}: unexpected response", self.provider_id.value
            )
        components = self.parse_response(payload)
        if components is None:
            return ""
        return self.format_address(components, level, hide_province)


class AmapProvider(GeocodingProvider):
    provider_id = ProviderId.AMAP
    display_name = "高德地图"

    def build_url(self, lat: float, lng: float, key: str) -> str:
        return (
            f"https://restapi.amap.com/v3/geocode/regeo?key={quote(key, safe='')}"
            f"&location={lng},{lat}&extensions=base"
        )

    def parse_response(self, payload: Any) -> AddressComponents | None:
        if payload.get("status") != "1" or not payload.get("regeocode"):
            raise GeocodingError(
                f"Amap API error: {payload.get('info') or 'unknown'}", self.provider_id.value
            )
        addr = payload["regeocode"].get("addressComponent") or {}
        street_number = addr.get("streetNumber")
        if not isinstance(street_number, dict):
            street_number = {}
        province = _text(addr.get("province"))
        # Amap returns an empty list for the city of direct-administered municipalities
        city = province if isinstance(addr.get("city"), list) else _text(addr.get("city"))
        return AddressComponents(
            province=province,
            city=city,
            district=_text(addr.get("district")),
            street=_text(street_number.get("street")) or _text(addr.get("township")),
            street_number=_text(street_number.get("number")),
        )


class TencentProvider(GeocodingProvider):
    provider_id = ProviderId.TENCENT
    display_name = "腾讯位置服务"

    def build_url(self, lat: float, lng: float, key: str) -> str:
        return (
            f"https://apis.map.qq.com/ws/geocoder/v1/?location={lat},{lng}"
            f"&key={quote(key, safe='')}&get_poi=0"
        )

    def parse_response(self, payload: Any) -> AddressComponents | None:
        if payload.get("status") != 0 or not payload.get("result"):
            raise GeocodingError(
                f"Tencent LBS error: {payload.get('message') or 'unknown'}", self.provider_id.value
            )
        ac = payload["result"].get("address_component") or {}
        return AddressComponents(
            province=_text(ac.get("province")),
            city=_text(ac.get("city")),
            district=_text(ac.get("district")),
            street=_text(ac.get("street")),
            street_number=_text(ac.get("street_number")),
        )


class TiandituProvider(GeocodingProvider):
    provider_id = ProviderId.TIANDITU
    display_name = "天地图"

    def build_url(self, lat: float, lng: float, key: str) -> str:
        post_str = json.dumps({"lon": lng, "lat": lat, "ver": 1}, separators=(",", ":"))
        return (
            f"https://api.tianditu.gov.cn/geocoder?postStr={quote(post_str, safe='')}"
            f"&type=geocode&tk={quote(key, safe='')}"
        )

    def parse_response(self, payload: Any) -> AddressComponents | None:
        if payload.get("status") not in ("0", 0):
            raise GeocodingError(
                f"Tianditu error: {payload.get('msg') or 'unknown'}", self.provider_id.value
            )
        ac = (payload.get("result") or {}).get("addressComponent") or {}
        return AddressComponents(
            province=_text(ac.get("province")),
            city=_text(ac.get("city")),
            district=_text(ac.get("county")) or _text(ac.get("district")),
            street=_text(ac.get("road")) or _text(ac.get("street")),
            street_number=_text(ac.get("street_number")) or _text(ac.get("address")),
        )


class QWeatherProvider(GeocodingProvider):
    provider_id = ProviderId.QWEATHER
    display_name = "和风天气"
    address_style = "detect"

    def build_url(self, lat: float, lng: float, key: str) -> str:
        return (
            f"https://geoapi.qweather.com/v2/city/lookup?location={lng},{lat}"
            f"&key={quote(key, safe='')}&number=1"
        )

    def parse_response(self, payload: Any) -> AddressComponents | None:
        locations = payload.get("location") or []
        if payload.get("code") != "200" or not locations:
            raise GeocodingError(
                f"QWeather error: code={payload.get('code') or 'unknown'}", self.provider_id.value
            )
        loc = locations[0]
        adm1 = _text(loc.get("adm1"))
        adm2 = _text(loc.get("adm2"))
        name = _text(loc.get("name"))
        # adm1 may carry a 市/省 suffix that adm2 lacks, e.g. 北京市 vs 北京
        is_direct = bool(adm2) and (adm1 == adm2 or adm1.startswith(adm2))
        return AddressComponents(
            province=adm2 if is_direct else adm1,
            city=adm2,
            district=name if name and name != adm2 else "",
        )

    def is_cjk_result(self, components: AddressComponents) -> bool:
        # the location name can be CJK even when the admin areas are romanized
        return has_cjk(components.province + components.city)


class MapboxProvider(GeocodingProvider):
    provider_id = ProviderId.MAPBOX
    display_name = "Mapbox"
    address_style = "international"

    _TYPES = "address,neighborhood,locality,district,place,region"

    def build_url(self, lat: float, lng: float, key: str) -> str:
        return (
            f"https://api.mapbox.com/geocoding/v5/mapbox.places/{lng},{lat}.json"
            f"?access_token={quote(key, safe='')}&language=en&types={self._TYPES}"
        )

    def parse_response(self, payload: Any) -> AddressComponents | None:
        features = payload.get("features") or []
        if not features:
            return None
        c = AddressComponents()
        for feature in features:
            types = feature.get("place_type") or []
            text = _text(feature.get("text"))
            if "address" in types:
                c.street_number = _text(feature.get("address"))
                c.street = text
            is_district = "district" in types or "neighborhood" in types or "locality" in types
            if is_district and not c.district:
                c.district = text
            if "place" in types:
                c.city = text
            if "region" in types:
                c.province = text
        return c


class MapTilerProvider(GeocodingProvider):
    provider_id = ProviderId.MAPTILER
    display_name = "MapTiler"
    address_style = "international"

    def build_url(self, lat: float, lng: float, key: str) -> str:
        return f"https://api.maptiler.com/geocoding/{lng},{lat}.json?key={quote(key, safe='')}"

    def parse_response(self, payload: Any) -> AddressComponents | None:
        features = payload.get("features") or []
        if not features:
            return None
        c = AddressComponents()
        for feature in features:
            types = feature.get("place_type") or []
            text = _text(feature.get("text"))
            if "address" in types:
                c.street = text
                c.street_number = _text(feature.get("address"))
            if ("municipality" in types or "municipal_district" in types) and not c.district:
                c.district = text
            if ("place" in types or "city" in types) and not c.city:
                c.city = text
            if ("region" in types or "state" in types) and not c.province:
                c.province = text

        # Structured context of the best match fills whatever is still missing
        for ctx in features[0].get("context") or []:
            cid = _text(ctx.get("id"))
            text = _text(ctx.get("text"))
            if cid.startswith(("municipality", "municipal_district")) and not c.district:
                c.district = text
            if cid.startswith(("place", "city")) and not c.city:
                c.city = text
            if cid.startswith(("region", "state")) and not c.province:
                c.province = text
        return c


class GoogleProvider(GeocodingProvider):
    provider_id = ProviderId.GOOGLE
    display_name = "Google Maps"
    address_style = "detect"

    def build_url(self, lat: float, lng: float, key: str) -> str:
        return (
            f"https://maps.googleapis.com/maps/api/geocode/json?latlng={lat},{lng}"
            f"&key={quote(key, safe='')}&language=en"
        )

    def parse_response(self, payload: Any) -> AddressComponents | None:
        results = payload.get("results") or []
        if payload.get("status") != "OK" or not results:
            message = payload.get("error_message") or payload.get("status") or "unknown"
            raise GeocodingError(f"Google Geocoding error: {message}", self.provider_id.value)
        c = AddressComponents()
        for comp in results[0].get("address_components") or []:
            types = comp.get("types") or []
            name = _text(comp.get("long_name"))
            if "street_number" in types:
                c.street_number = name
            if "route" in types:
                c.street = name
            if ("sublocality" in types or "sublocality_level_1" in types) and not c.district:
                c.district = name
            if "locality" in types:
                c.city = name
            if "administrative_area_level_1" in types:
                c.province = name
        return c


PROVIDERS: dict[ProviderId, GeocodingProvider] = {
    p.provider_id: p
    for p in (
        AmapProvider(),
        TencentProvider(),
        TiandituProvider(),
        QWeatherProvider(),
        MapboxProvider(),
        MapTilerProvider(),
        GoogleProvider(),
    )
}


def _first_keyed(candidates: Iterable[ProviderId], request: GeocodeRequest) -> ProviderId | None:
    for pid in candidates:
        if request.key_for(pid):
            return pid
    return None


def select_provider(request: GeocodeRequest) -> ProviderId | None:
    """Pick the provider for `request`; None when nothing usable is configured."""
    if request.provider != AUTO_PROVIDER:
        try:
            return ProviderId(getattr(request.provider, "value", request.provider))
        except ValueError:
            logger.warning("Unknown geocoding provider: {}", request.provider)
            return None

    domestic = is_domestic_location(request.lat, request.lng, request.home_countries)
    if domestic and request.domestic_provider and request.key_for(request.domestic_provider):
        return request.domestic_provider
    if not domestic and request.foreign_provider and request.key_for(request.foreign_provider):
        return request.foreign_provider

    if is_in_china(request.lat, request.lng):
        return _first_keyed(DOMESTIC_PREFERENCE, request)
    return _first_keyed(FOREIGN_PREFERENCE, request)


class ReverseGeocoder:
    """Resolves `GeocodeRequest`s through the selected provider adapter."""

    def __init__(self, transport: JsonTransport | None = None) -> None:
        self._transport = transport
        self._own_client: JsonHttpClient | None = None

    def _get_transport(self) -> JsonTransport:
        if self._transport is None:
            self._own_client = JsonHttpClient()
            self._transport = self._own_client
        return self._transport

    def close(self) -> None:
        """Close the HTTP client this geocoder created; injected transports are left open."""
        if self._own_client is not None:
            self._own_client.close()
            self._own_client = None
            self._transport = None

    def __enter__(self) -> ReverseGeocoder:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def reverse_geocode(self, request: GeocodeRequest) -> str:
        """Return the formatted address, or empty string when no data is available.

        Raises:
            GeocodingError: Provider failure signal, transport error or bad body.
        """
        pid = select_provider(request)
        if pid is None:
            logger.debug("No geocoding provider configured for ({}, {})", request.lat, request.lng)
            return ""
        key = request.key_for(pid)
        if not key:
            return ""
        provider = PROVIDERS[pid]
        address = provider.reverse_geocode(
            self._get_transport(),
            request.lat,
            request.lng,
            request.granularity,
            key,
            request.hide_province,
        )
        logger.info("Geocoded via {}: {}", pid.value, address)
        return address


def reverse_geocode(request: GeocodeRequest, transport: JsonTransport | None = None) -> str:
    """Module-level convenience wrapper around `ReverseGeocoder`."""
    with ReverseGeocoder(transport) as geocoder:
        return geocoder.reverse_geocode(request)
