# covid_odata/data/mock_data.py
"""Static snapshot used when the API is unavailable or mock mode is on."""

COVID_DATA = [
    {"country": "US", "iso2": "US", "iso3": "USA", "confirmed": 52380854, "active": 10000000, "recovered": 41000000, "deaths": 1380854, "daily_increase": 150000, "percent": 19},
    {"country": "India", "iso2": "IN", "iso3": "IND", "confirmed": 34751332, "active": 5000000, "recovered": 29000000, "deaths": 751332, "daily_increase": 95000, "percent": 12},
    {"country": "Brazil", "iso2": "BR", "iso3": "BRA", "confirmed": 22451205, "active": 3000000, "recovered": 18900000, "deaths": 551205, "daily_increase": 65000, "percent": 8},
    {"country": "United Kingdom", "iso2": "GB", "iso3": "GBR", "confirmed": 11958528, "active": 2000000, "recovered": 9500000, "deaths": 458528, "daily_increase": 45000, "percent": 4},
    {"country": "Russia", "iso2": "RU", "iso3": "RUS", "confirmed": 10213265, "active": 1500000, "recovered": 8400000, "deaths": 313265, "daily_increase": 35000, "percent": 4},
    {"country": "France", "iso2": "FR", "iso3": "FRA", "confirmed": 8220540, "active": 1200000, "recovered": 6800000, "deaths": 220540, "daily_increase": 30000, "percent": 3},
    {"country": "Turkey", "iso2": "TR", "iso3": "TUR", "confirmed": 9306094, "active": 1300000, "recovered": 7800000, "deaths": 206094, "daily_increase": 28000, "percent": 3},
    {"country": "Spain", "iso2": "ES", "iso3": "ESP", "confirmed": 5718007, "active": 900000, "recovered": 4650000, "deaths": 168007, "daily_increase": 22000, "percent": 2},
    {"country": "Italy", "iso2": "IT", "iso3": "ITA", "confirmed": 5647313, "active": 880000, "recovered": 4600000, "deaths": 167313, "daily_increase": 21000, "percent": 2},
    {"country": "Germany", "iso2": "DE", "iso3": "DEU", "confirmed": 7009048, "active": 1100000, "recovered": 5750000, "deaths": 159048, "daily_increase": 25000, "percent": 3},
    {"country": "Argentina", "iso2": "AR", "iso3": "ARG", "confirmed": 5460042, "active": 850000, "recovered": 4450000, "deaths": 160042, "daily_increase": 20000, "percent": 2},
    {"country": "Poland", "iso2": "PL", "iso3": "POL", "confirmed": 4049838, "active": 600000, "recovered": 3300000, "deaths": 149838, "daily_increase": 18000, "percent": 1},
    {"country": "Iran", "iso2": "IR", "iso3": "IRN", "confirmed": 6184762, "active": 900000, "recovered": 5100000, "deaths": 184762, "daily_increase": 22000, "percent": 2},
    {"country": "Mexico", "iso2": "MX", "iso3": "MEX", "confirmed": 3950200, "active": 580000, "recovered": 3200000, "deaths": 170200, "daily_increase": 17000, "percent": 1},
    {"country": "Ukraine", "iso2": "UA", "iso3": "UKR", "confirmed": 3823879, "active": 550000, "recovered": 3100000, "deaths": 173879, "daily_increase": 16000, "percent": 1},
    {"country": "South Africa", "iso2": "ZA", "iso3": "ZAF", "confirmed": 3413540, "active": 480000, "recovered": 2800000, "deaths": 133540, "daily_increase": 14000, "percent": 1},
    {"country": "Philippines", "iso2": "PH", "iso3": "PHL", "confirmed": 2818240, "active": 400000, "recovered": 2300000, "deaths": 118240, "daily_increase": 12000, "percent": 1},
    {"country": "Malaysia", "iso2": "MY", "iso3": "MYS", "confirmed": 2741176, "active": 380000, "recovered": 2250000, "deaths": 111176, "daily_increase": 11000, "percent": 1},
    {"country": "Netherlands", "iso2": "NL", "iso3": "NLD", "confirmed": 2196784, "active": 320000, "recovered": 1800000, "deaths": 76784, "daily_increase": 9000, "percent": 1},
    {"country": "Indonesia", "iso2": "ID", "iso3": "IDN", "confirmed": 4281467, "active": 600000, "recovered": 3500000, "deaths": 181467, "daily_increase": 18000, "percent": 2},
    {"country": "Chile", "iso2": "CL", "iso3": "CHL", "confirmed": 1804251, "active": 250000, "recovered": 1500000, "deaths": 54251, "daily_increase": 8000, "percent": 1},
]
