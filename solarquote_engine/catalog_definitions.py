# Structured definitions for the default inventory and pricing settings.
# Records use the same keys as inventory rows handed over by the persistence layer
# and are turned into CatalogItem objects by `catalog.catalog_from_records`.
DEFAULT_INVENTORY = [
    # ==========================================================================================
    # 1. PV PANELS (power in W)
    # ==========================================================================================
    {"id": "p1", "name": "Jinko Tiger Neo 440W N-Type", "category": "PANEL", "price": 460,
     "power": 440, "unit": "szt.", "quantity": 200, "min_quantity": 50, "warranty": "25 lat"},
    {"id": "p2", "name": "Longi Solar Hi-MO 6 435W", "category": "PANEL", "price": 450,
     "power": 435, "unit": "szt.", "quantity": 200, "min_quantity": 40, "warranty": "15 lat"},
    {"id": "p3", "name": "Jinko 475W Bifacial", "category": "PANEL", "price": 520,
     "power": 475, "unit": "szt.", "quantity": 50, "min_quantity": 20, "warranty": "30 lat"},

    # ==========================================================================================
    # 2. INVERTERS (power in kW)
    # ==========================================================================================
    {"id": "i1", "name": "FoxESS 3.0 (1F) Standard", "category": "INVERTER", "price": 3000,
     "power": 3, "phases": 1, "unit": "szt.", "quantity": 5, "min_quantity": 2, "warranty": "12 lat"},
    {"id": "i2", "name": "FoxESS 5.0 (3F) Standard", "category": "INVERTER", "price": 4000,
     "power": 5, "phases": 3, "unit": "szt.", "quantity": 10, "min_quantity": 5, "warranty": "12 lat"},
    {"id": "i3", "name": "FoxESS 8.0 (3F) Standard", "category": "INVERTER", "price": 4800,
     "power": 8, "phases": 3, "unit": "szt.", "quantity": 8, "min_quantity": 3, "warranty": "12 lat"},
    {"id": "i4", "name": "FoxESS 10.0 (3F) Standard", "category": "INVERTER", "price": 5200,
     "power": 10, "phases": 3, "unit": "szt.", "quantity": 12, "min_quantity": 5, "warranty": "12 lat"},
    {"id": "i5", "name": "FoxESS 15.0 (3F) Standard", "category": "INVERTER", "price": 6500,
     "power": 15, "phases": 3, "unit": "szt.", "quantity": 4, "min_quantity": 2, "warranty": "12 lat"},
    {"id": "ih1", "name": "FoxESS H3-5.0 Hybrid", "category": "INVERTER", "price": 6500,
     "power": 5, "phases": 3, "unit": "szt.", "quantity": 5, "min_quantity": 2, "warranty": "12 lat"},
    {"id": "ih2", "name": "FoxESS H3-8.0 Hybrid", "category": "INVERTER", "price": 7800,
     "power": 8, "phases": 3, "unit": "szt.", "quantity": 5, "min_quantity": 2, "warranty": "12 lat"},

    # ==========================================================================================
    # 3. ENERGY STORAGE (capacity in kWh, sold per set)
    # ==========================================================================================
    {"id": "s1", "name": "FoxESS ECS 5.76 kWh (Master+Slave)", "category": "ENERGY_STORAGE", "price": 7500,
     "power": 5, "capacity": 5.76, "unit": "kpl.", "quantity": 10, "min_quantity": 2, "warranty": "10 lat"},
    {"id": "s2", "name": "FoxESS ECS 11.52 kWh (Master+3xSlave)", "category": "ENERGY_STORAGE", "price": 13500,
     "power": 10, "capacity": 11.52, "unit": "kpl.", "quantity": 5, "min_quantity": 1, "warranty": "10 lat"},
    {"id": "s3", "name": "FoxESS ECS 14.4 kWh (Master+4xSlave)", "category": "ENERGY_STORAGE", "price": 17500,
     "power": 10, "capacity": 14.4, "unit": "kpl.", "quantity": 3, "min_quantity": 1, "warranty": "10 lat"},

    # ==========================================================================================
    # 4. MOUNTING SYSTEMS (priced per panel)
    # ==========================================================================================
    {"id": "m1", "name": "Pitched roof mounting (tile)", "category": "ACCESSORIES", "price": 120,
     "unit": "szt.", "quantity": 100, "min_quantity": 10, "warranty": "10 lat"},
    {"id": "m2", "name": "Pitched roof mounting (sheet metal/trapezoid)", "category": "ACCESSORIES", "price": 100,
     "unit": "szt.", "quantity": 100, "min_quantity": 10, "warranty": "10 lat"},
    {"id": "m3", "name": "Flat roof brackets (15 degrees)", "category": "ACCESSORIES", "price": 200,
     "unit": "szt.", "quantity": 50, "min_quantity": 5, "warranty": "10 lat"},
    {"id": "m4", "name": "Ground mounting, 2 supports", "category": "ACCESSORIES", "price": 400,
     "unit": "szt.", "quantity": 20, "min_quantity": 2, "warranty": "15 lat"},

    # ==========================================================================================
    # 5. ADD-ONS
    # ==========================================================================================
    {"id": "ems1", "name": "EMS energy management system", "category": "ADDONS", "price": 1500,
     "unit": "szt.", "quantity": 10, "min_quantity": 2, "warranty": "2 lata"},
    {"id": "ups1", "name": "UPS backup power system", "category": "ADDONS", "price": 2500,
     "unit": "szt.", "quantity": 5, "min_quantity": 1, "warranty": "2 lata"},
]

# Per-salesperson margin settings (flat PLN), keyed by user id
DEFAULT_SALESPERSON_SETTINGS = {
    "admin1": {"margin_pv": 800, "margin_storage": 500, "margin_hybrid": 1200, "margin_heat": 1000,
               "trench_rate_per_meter": 100, "trench_free_meters": 0},
    "sales1": {"margin_pv": 1000, "margin_storage": 800, "margin_hybrid": 1500, "margin_heat": 1200,
               "trench_rate_per_meter": 100, "trench_free_meters": 0},
}

# Pricing tier per salesperson ("2" = higher tier with the organization markup)
DEFAULT_PRICING_TIERS = {
    "admin1": "1",
    "sales1": "2",
}

DEFAULT_ORG_PRICING_SETTINGS = {"markup_type": "PERCENT", "markup_value": 5}

# Sample customers offered in the wizard's client step
DEFAULT_CUSTOMERS = [
    {"id": "c1", "name": "Jan Kowalski", "address": "ul. Sloneczna 5, Krakow"},
    {"id": "c2", "name": "Anna Nowak", "address": "ul. Lesna 12, Wieliczka"},
]
