from datetime import date

from werkzeug.security import generate_password_hash

from app import create_app
from models import db, User, Shop, Menu, Item, Event

DEFAULT_ITEMS = [
    ("Latte", "L", 5.00, "#d97706"),
    ("Cappuccino", "C", 4.75, "#ea580c"),
    ("Americano", "A", 3.50, "#525252"),
    ("Matcha Latte", "M", 5.50, "#16a34a"),
    ("Hot Chocolate", "H", 4.00, "#7c3aed"),
]

app = create_app()
with app.app_context():
    user = User.query.filter_by(username="admin").first()
    if user is None:
        user = User(username="admin", password_hash=generate_password_hash("password"))
        db.session.add(user)
        db.session.flush()

    if user.shop_id is None:
        shop = Shop(name="Pop-up Coffee")
        db.session.add(shop)
        db.session.flush()
        menu = Menu(shop_id=shop.id, name="Default Menu", is_default=True)
        db.session.add(menu)
        db.session.flush()
        shop.default_menu_id = menu.id
        user.shop_id = shop.id
        db.session.add_all(
            [Item(menu_id=menu.id, name=n, code=c, price=p, color=col) for n, c, p, col in DEFAULT_ITEMS]
        )
        db.session.add(Event(shop_id=shop.id, name="Saturday Market", date=date.today(), menu_id=menu.id))

    db.session.commit()
    print("Seeded. Username=admin, Password=password")
