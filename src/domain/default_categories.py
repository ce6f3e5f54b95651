from __future__ import annotations

from domain.models import Category

# name -> (description, [(child name, child description), ...])
DEFAULT_HIERARCHY: dict[str, tuple[str, list[tuple[str, str]]]] = {
    "Home": ("Housing and household costs", [
        ("Rent", "Monthly rent payment"),
        ("Mortgage", "Mortgage instalments"),
        ("Utilities", "Electricity, gas, water and internet"),
        ("Maintenance", "Repairs and upkeep"),
        ("Furniture", "Furniture and decoration"),
    ]),
    "Transport": ("Getting around", [
        ("Fuel", "Petrol, diesel and charging"),
        ("Car Insurance", "Vehicle insurance"),
        ("Public Transport", "Bus, metro and trains"),
        ("Taxi", "Taxi and ride sharing"),
        ("Parking", "Parking fees"),
    ]),
    "Food": ("Food and drinks", [
        ("Groceries", "Supermarket shopping"),
        ("Restaurants", "Eating out"),
        ("Delivery", "Food delivered at home"),
        ("Coffee", "Cafes and coffee breaks"),
    ]),
    "Health": ("Medical costs and wellbeing", [
        ("Doctor", "GP and specialist visits"),
        ("Pharmacy", "Medicines and supplements"),
        ("Dentist", "Dental care"),
        ("Gym", "Fitness memberships"),
    ]),
    "Entertainment": ("Leisure and free time", [
        ("Streaming", "Video and music subscriptions"),
        ("Books", "Books and newspapers"),
        ("Hobbies", "Recreational activities"),
        ("Travel", "Holidays and weekends away"),
    ]),
    "Education": ("Training and personal growth", [
        ("Courses", "Professional training"),
        ("Tuition", "University fees"),
    ]),
    "Investments": ("Investment vehicles", [
        ("Stocks", "Individual shares"),
        ("ETF", "Exchange traded funds"),
        ("Crypto", "Cryptocurrencies"),
    ]),
    "Income": ("Sources of income", [
        ("Salary", "Regular salary"),
        ("Freelance", "Self-employed work"),
        ("Dividends", "Dividends and interest"),
        ("Refunds", "Expense refunds"),
    ]),
}


def build_default_categories() -> list[Category]:
    """Return every default category, parents before children, already linked."""
    categories: list[Category] = []
    for name, (description, children) in DEFAULT_HIERARCHY.items():
        root = Category(name=name, description=description)
        categories.append(root)
        for child_name, child_description in children:
            child = Category(name=child_name, description=child_description, parent_id=root.id)
            root.child_ids.add(child.id)
            categories.append(child)
    return categories
