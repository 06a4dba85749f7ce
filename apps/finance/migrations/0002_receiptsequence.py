from django.db import migrations, models


def seed_sequences(apps, schema_editor):
    """Start each (prefix, year) counter after the highest receipt already issued"""
    Payment = apps.get_model('finance', 'Payment')
    ReceiptSequence = apps.get_model('finance', 'ReceiptSequence')

    highest = {}
    for receipt_number in Payment.objects.values_list('receipt_number', flat=True).iterator():
        prefix, _, rest = receipt_number.partition('-')
        year, _, number = rest.partition('-')
        if not (year.isdigit() and number.isdigit()):
            continue
        key = (prefix, int(year))
        highest[key] = max(highest.get(key, 0), int(number))

    ReceiptSequence.objects.bulk_create([
        ReceiptSequence(prefix=prefix, year=year, last_number=number)
        for (prefix, year), number in highest.items()
    ])


class Migration(migrations.Migration):

    dependencies = [
        ('finance', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='ReceiptSequence',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('prefix', models.CharField(max_length=20)),
                ('year', models.PositiveIntegerField()),
                ('last_number', models.PositiveIntegerField(default=0)),
            ],
            options={
                'unique_together': {('prefix', 'year')},
            },
        ),
        migrations.RunPython(seed_sequences, migrations.RunPython.noop),
    ]
