"""
Constants and state helpers for the spy game.

Locations with their role lists, phase names, scoring values and initial
data creation.
"""

import random
import time

# ── Phases ───────────────────────────────────────────────────────────

WAITING = "waiting"
ROLE_REVEAL = "role_reveal"
QUESTIONING = "questioning"
VOTING = "voting"
RESULTS = "results"

SPY_ROLE = "Spy"

# ── Scoring ──────────────────────────────────────────────────────────

SPY_ESCAPE_POINTS = 300
CATCH_SPY_POINTS = 100
CORRECT_VOTE_POINTS = 50
WRONG_VOTE_POINTS = -10

TOTAL_ROUNDS = 3
QUESTION_TIME_LIMIT = 300   # seconds
VOTING_TIME_LIMIT = 60      # seconds
QUESTIONS_PER_PLAYER = 2

# ── Locations ────────────────────────────────────────────────────────
# Every location has at least nine roles so a full table never repeats one.

LOCATIONS = [
    {"name": "Airport", "category": "Travel", "roles": [
        "Pilot", "Flight Attendant", "Security Guard", "Passenger", "Customs Officer",
        "Baggage Handler", "Check-in Staff", "Duty-Free Shop Worker", "Air Traffic Controller",
        "Airline Manager"]},
    {"name": "Train Station", "category": "Travel", "roles": [
        "Conductor", "Passenger", "Ticket Inspector", "Station Master", "Security Guard",
        "Janitor", "Cafe Worker", "Information Desk Staff", "Baggage Porter",
        "Platform Attendant"]},
    {"name": "Hotel", "category": "Travel", "roles": [
        "Receptionist", "Guest", "Bellhop", "Housekeeper", "Concierge", "Chef", "Waiter",
        "Hotel Manager", "Security Guard", "Spa Therapist"]},
    {"name": "Cruise Ship", "category": "Travel", "roles": [
        "Captain", "Passenger", "Cook", "Entertainer", "Deckhand", "Bartender",
        "Cruise Director", "Ship Doctor", "Lifeguard", "Steward"]},
    {"name": "Movie Theater", "category": "Entertainment", "roles": [
        "Ticket Seller", "Projectionist", "Usher", "Moviegoer", "Popcorn Vendor",
        "Manager", "Film Critic", "Cleaner", "Security Guard"]},
    {"name": "Casino", "category": "Entertainment", "roles": [
        "Dealer", "Gambler", "Bartender", "Security Guard", "Pit Boss", "Cashier",
        "Waitress", "Entertainer", "Casino Manager"]},
    {"name": "Hospital", "category": "Public", "roles": [
        "Doctor", "Nurse", "Patient", "Surgeon", "Receptionist", "Paramedic",
        "Pharmacist", "Visitor", "Janitor", "Radiologist"]},
    {"name": "School", "category": "Public", "roles": [
        "Teacher", "Student", "Principal", "Janitor", "Librarian", "Coach",
        "Cafeteria Worker", "Nurse", "Bus Driver"]},
    {"name": "Police Station", "category": "Public", "roles": [
        "Detective", "Officer", "Chief", "Suspect", "Lawyer", "Dispatcher",
        "Forensic Analyst", "Witness", "Journalist"]},
    {"name": "Restaurant", "category": "Workplace", "roles": [
        "Chef", "Waiter", "Customer", "Host", "Dishwasher", "Sommelier",
        "Manager", "Food Critic", "Bartender"]},
    {"name": "Bank", "category": "Workplace", "roles": [
        "Teller", "Customer", "Security Guard", "Loan Officer", "Bank Manager",
        "Armored Car Driver", "Accountant", "Janitor", "Financial Advisor"]},
    {"name": "Beach", "category": "Recreation", "roles": [
        "Lifeguard", "Surfer", "Tourist", "Ice Cream Vendor", "Photographer",
        "Swimmer", "Volleyball Player", "Kite Flyer", "Beach Cleaner"]},
    {"name": "Zoo", "category": "Entertainment", "roles": [
        "Zookeeper", "Visitor", "Veterinarian", "Tour Guide", "Souvenir Seller",
        "Photographer", "Researcher", "Child", "Security Guard"]},
    {"name": "Museum", "category": "Culture", "roles": [
        "Curator", "Tour Guide", "Visitor", "Security Guard", "Art Restorer",
        "Gift Shop Clerk", "Historian", "Student", "Photographer"]},
]


# ── Initial State ────────────────────────────────────────────────────

def create_initial_data():
    return {
        "phase": WAITING,
        "current_round": 1,
        "total_rounds": TOTAL_ROUNDS,
        "location": "",
        "location_category": "",
        "spy_player_id": "",
        # player_id -> role
        "player_roles": {},
        # voter_id -> target_id
        "votes": {},
        "question_history": [],
        "scores": {},
        "phase_start_time": time.time(),
        "question_time_limit": QUESTION_TIME_LIMIT,
        "voting_time_limit": VOTING_TIME_LIMIT,
        "current_questioner_id": None,
        "current_target_id": None,
        "pending_question": None,
        "accused_player_id": None,
        # Kept as a list so it survives JSON round trips
        "players_ready": [],
    }


def deal_round(data, player_ids, rng=random, locations=LOCATIONS):
    """Pick a location and the spy, and hand out one distinct role to everyone else."""
    location = rng.choice(locations)
    data["location"] = location["name"]
    data["location_category"] = location["category"]
    data["spy_player_id"] = rng.choice(player_ids)

    roles = list(location["roles"])
    rng.shuffle(roles)
    data["player_roles"] = {}
    for pid in player_ids:
        if pid == data["spy_player_id"]:
            data["player_roles"][pid] = SPY_ROLE
        else:
            data["player_roles"][pid] = roles.pop()
