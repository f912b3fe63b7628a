from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='FinancialAuditLog',
            fields=[
                ('id', models.AutoField(primary_key=True, serialize=False)),
                ('timestamp', models.DateTimeField(db_index=True)),
                ('action', models.CharField(choices=[('SCHEDULE_GENERATE', 'Billing Schedule Generated'), ('ENROLLMENT_APPROVE', 'Enrollment Approved'), ('ENROLLMENT_REJECT', 'Enrollment Rejected'), ('PAYMENT_SUBMIT', 'Payment Submitted'), ('PAYMENT_RECORD', 'Payment Recorded'), ('OVERPAYMENT_CREDIT', 'Overpayment Credit Applied'), ('PAYMENT_APPROVE', 'Payment Approved'), ('PAYMENT_REJECT', 'Payment Rejected'), ('FINANCIAL_DATA_EXPORT', 'Financial Data Exported')], db_index=True, max_length=30)),
                ('user_id', models.CharField(blank=True, db_index=True, max_length=100, null=True)),
                ('user_name', models.CharField(blank=True, max_length=200, null=True)),
                ('user_role', models.CharField(blank=True, max_length=100, null=True)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('object_type', models.CharField(blank=True, max_length=100, null=True)),
                ('object_id', models.CharField(blank=True, db_index=True, max_length=100, null=True)),
                ('object_description', models.CharField(blank=True, max_length=500, null=True)),
                ('amount_involved', models.DecimalField(blank=True, decimal_places=2, max_digits=15, null=True)),
                ('currency', models.CharField(blank=True, max_length=3, null=True)),
                ('student_id', models.CharField(blank=True, db_index=True, max_length=100, null=True)),
                ('student_name', models.CharField(blank=True, max_length=200, null=True)),
                ('old_values', models.JSONField(blank=True, null=True)),
                ('new_values', models.JSONField(blank=True, null=True)),
                ('additional_data', models.JSONField(blank=True, default=dict)),
                ('notes', models.TextField(blank=True, null=True)),
                ('risk_level', models.CharField(choices=[('LOW', 'Low Risk'), ('MEDIUM', 'Medium Risk'), ('HIGH', 'High Risk'), ('CRITICAL', 'Critical Risk')], db_index=True, default='LOW', max_length=10)),
                ('is_automated', models.BooleanField(default=False)),
                ('batch_id', models.CharField(blank=True, max_length=100, null=True)),
            ],
            options={
                'verbose_name': 'Financial Audit Log',
                'verbose_name_plural': 'Financial Audit Logs',
                'ordering': ['-timestamp', '-id'],
                'indexes': [
                    models.Index(fields=['timestamp', 'action'], name='audit_timestamp_action_idx'),
                    models.Index(fields=['student_id', 'timestamp'], name='audit_student_timestamp_idx'),
                ],
            },
        ),
    ]
