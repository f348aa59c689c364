from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("orders", "0002_seed_shipping_methods"),
    ]

    operations = [
        migrations.AlterField(
            model_name="order",
            name="payment_method",
            field=models.CharField(
                choices=[
                    ("CREDIT_CARD", "Credit card"),
                    ("DEBIT_CARD", "Debit card"),
                    ("CASH_ON_DELIVERY", "Cash on delivery"),
                ],
                max_length=32,
            ),
        ),
    ]
