"""
Database seeding script to create initial admin user and sample catalog data
"""
from decimal import Decimal

from app import app, db
from models import User, Brand, Product, Customer


def seed_database():
    """Seed the database with initial data"""
    with app.app_context():
        # Create tables
        print("Creating database tables...")
        db.create_all()

        # Check if admin already exists
        admin = User.query.filter_by(username='admin').first()
        if admin:
            print("✅ Admin user already exists")
        else:
            # Create admin user
            print("Creating admin user...")
            admin = User(
                username='admin',
                full_name='Administrator',
                email='admin@example.com',
                role='admin',
                is_active=True
            )
            admin.set_password('admin123')  # Change this password!
            db.session.add(admin)
            print("✅ Admin user created (username: admin, password: admin123)")

        sales = User.query.filter_by(username='sales1').first()
        if not sales:
            print("Creating sample salesperson...")
            sales = User(
                username='sales1',
                full_name='Lily Chen',
                email='sales1@example.com',
                phone='+86 138 0000 0001',
                role='user',
                is_active=True
            )
            sales.set_password('sales123')
            db.session.add(sales)
            print("✅ Sales user created (username: sales1, password: sales123)")

        db.session.commit()

        # Create sample catalog
        if Brand.query.count() == 0:
            print("Creating sample brands and products...")
            brand = Brand(name='Lianhe', description='House brand')
            db.session.add(brand)
            db.session.flush()

            products = [
                Product(sku='LH-PB-100', name='Pressure Gauge 100mm', description='Stainless steel case, 0-16 bar',
                        price=Decimal('12.50'), currency='USD', unit='pcs', brand_id=brand.id),
                Product(sku='LH-FV-050', name='Flow Valve DN50', description='Cast iron body, PN16',
                        price=Decimal('86.00'), currency='USD', unit='pcs', brand_id=brand.id),
                Product(sku='LH-TS-200', name='Temperature Sensor PT100', description='Probe length 200mm',
                        price=Decimal('140.00'), currency='CNY', unit='pcs', brand_id=brand.id),
            ]
            db.session.add_all(products)
            db.session.commit()
            print(f"✅ Created {len(products)} products")

        # Create sample customers
        if Customer.query.count() == 0:
            print("Creating sample customers...")
            customers = [
                Customer(name='Acme Industrial Supply', contact_person='John Smith', email='john@acme.example',
                         phone='+1 555 0100', address='100 Main Street', city='Houston', country='USA',
                         zip_code='77002', region='International', source='Trade Show'),
                Customer(name='华东机电设备有限公司', contact_person='王经理', phone='021-5555 0100',
                         address='上海市浦东新区世纪大道100号', city='上海', country='中国',
                         tax_id='91310000MA1FL00000', bank_name='中国工商银行上海分行',
                         bank_account='1001 0000 0000 0000', region='Domestic', source='Referral'),
            ]
            db.session.add_all(customers)
            db.session.commit()
            print(f"✅ Created {len(customers)} customers")

        print("\n🎉 Database seeded successfully!")
        print("\nLogin credentials:")
        print("  Admin: admin / admin123")
        print("  Sales: sales1 / sales123")


if __name__ == '__main__':
    seed_database()
