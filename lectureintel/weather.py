"""
Weather for the dashboard greeting.

Order of preference:
1. cached reading younger than `cache_minutes` (same city)
2. OpenWeatherMap current weather, if an API key is configured
3. a simulated reading (never fails)

Network problems are logged and fall through to the simulated reading.
"""

from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import requests

from lectureintel.request_tokens import RequestTokens
from lectureintel.settings import settings


logger = logging.getLogger(__name__)

WEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"
CACHE_FILENAME = "weather_cache.json"

WEATHER_ICONS = {
    "sunny": "☀️",
    "clear": "\U0001f319",
    "cloudy": "☁️",
    "rainy": "\U0001f327️",
    "stormy": "⛈️",
    "snowy": "❄️",
}

CONDITION_MAP = {
    "Clear": "sunny",
    "Clouds": "cloudy",
    "Rain": "rainy",
    "Drizzle": "rainy",
    "Thunderstorm": "stormy",
    "Snow": "snowy",
    "Mist": "cloudy",
    "Fog": "cloudy",
    "Haze": "cloudy",
}


@dataclass
class Weather:
    temp: int
    condition: str
    icon: str
    city: str
    humidity: int
    feels_like: int
    simulated: bool = False


def map_condition(owm_condition: str) -> str:
    return CONDITION_MAP.get(owm_condition, "sunny")


def simulated_weather(city: str, now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> Weather:
    rng = rng or random.Random()
    hour = (now or datetime.now()).hour
    temp = rng.randint(20, 34)
    if hour < 6 or hour > 18:
        condition = "clear"
    else:
        condition = rng.choice(["sunny", "cloudy", "sunny", "sunny", "cloudy"])
    return Weather(
        temp=temp,
        condition=condition,
        icon=WEATHER_ICONS[condition],
        city=city,
        humidity=rng.randint(40, 79),
        feels_like=temp + rng.randint(-2, 1),
        simulated=True,
    )


class WeatherService:
    def __init__(
        self,
        api_key: Optional[str] = None,
        cache_path: str | Path | None = None,
        cache_minutes: Optional[int] = None,
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.openweather_api_key
        self.cache_path = Path(cache_path) if cache_path is not None else settings.resolved_data_dir() / CACHE_FILENAME
        minutes = cache_minutes if cache_minutes is not None else settings.weather_cache_minutes
        self.cache_seconds = minutes * 60
        self.timeout = timeout if timeout is not None else settings.weather_timeout
        self._clock = clock
        self._rng = rng
        self._tokens = RequestTokens()
        self.latest: Optional[Weather] = None

    # -- cache ----------------------------------------------------------------

    def _read_cache(self, city: str) -> Optional[Weather]:
        if not self.cache_path.exists():
            return None
        try:
            raw = json.loads(self.cache_path.read_text(encoding="utf-8"))
            if raw.get("city") != city:
                return None
            if self._clock() - float(raw["timestamp"]) >= self.cache_seconds:
                return None
            return Weather(**raw["data"])
        except (OSError, json.JSONDecodeError, UnicodeDecodeError, AttributeError, KeyError, TypeError, ValueError):
            return None

    def _write_cache(self, city: str, weather: Weather) -> None:
        payload = {"city": city, "timestamp": self._clock(), "data": asdict(weather)}
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            self.cache_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write weather cache %s: %s", self.cache_path, exc)

    # -- fetch ----------------------------------------------------------------

    def _fetch_remote(self, city: str) -> Optional[Weather]:
        if not self.api_key:
            return None
        params = {"q": city, "units": "metric", "appid": self.api_key}
        try:
            resp = requests.get(WEATHER_URL, params=params, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
            condition = map_condition(data["weather"][0]["main"])
            return Weather(
                temp=round(data["main"]["temp"]),
                condition=condition,
                icon=WEATHER_ICONS[condition],
                city=data.get("name") or city,
                humidity=int(data["main"]["humidity"]),
                feels_like=round(data["main"]["feels_like"]),
            )
        except (requests.RequestException, KeyError, IndexError, TypeError, ValueError) as exc:
            logger.warning("Weather fetch for %s failed, using simulated weather: %s", city, exc)
            return None

    def fetch(self, city: Optional[str] = None, now: Optional[datetime] = None) -> Weather:
        name = (city or settings.weather_city).strip()
        cached = self._read_cache(name)
        if cached is not None:
            return cached

        remote = self._fetch_remote(name)
        if remote is not None:
            self._write_cache(name, remote)
            return remote

        return simulated_weather(name, now=now, rng=self._rng)

    # -- latest reading ---------------------------------------------------------

    def begin(self) -> int:
        return self._tokens.issue()

    def apply(self, token: int, weather: Weather) -> bool:
        if not self._tokens.is_current(token):
            logger.debug("Dropping weather for superseded request %d", token)
            return False
        self.latest = weather
        return True

    def current(self, city: Optional[str] = None, now: Optional[datetime] = None) -> Weather:
        token = self.begin()
        weather = self.fetch(city, now=now)
        self.apply(token, weather)
        return weather
