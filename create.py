# create.py: bootstrap the first admin account
from hiredesk import create_app
from hiredesk.extensions import db
from hiredesk.models.user import Role, User


def main():
    app = create_app()
    with app.app_context():
        db.create_all()
        email = input("Admin email: ").strip().lower()
        name = input("Full name: ").strip()
        phone = input("Phone (optional): ").strip()

        # Check existing
        if User.query.filter_by(email=email).first():
            print("User with that email already exists.")
            return

        user = User(name=name, email=email, phone=phone or None, role=Role.ADMIN.value)
        db.session.add(user)
        db.session.commit()
        print(f"Admin user {email} created with id {user.id}.")
        print(f"Send it as the {app.config['IDENTITY_HEADER']} header to act as this admin.")

if __name__ == "__main__":
    main()
