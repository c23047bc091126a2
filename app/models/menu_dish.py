from app.extensions import db


class MenuDish(db.Model):
    __tablename__ = "menu_dishes"

    id = db.Column(db.Integer, primary_key=True)
    menu_id = db.Column(db.Integer, db.ForeignKey("menus.id"), nullable=False)
    dish_id = db.Column(db.Integer, db.ForeignKey("dishes.id"), nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=True)  # Frozen at publish time; NULL while draft
    sort = db.Column(db.Integer, nullable=False, default=0)

    dish = db.relationship("Dish")

    __table_args__ = (
        db.UniqueConstraint('menu_id', 'dish_id', name='uq_menu_dish'),
    )
