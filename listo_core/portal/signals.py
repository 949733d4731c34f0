from django.contrib.auth.models import User
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import Builder, Job, Profile, Worker
from .storage_utils import delete_many_quietly


@receiver(post_save, sender=User)
def sync_profile_email(sender, instance, created, **kwargs):
    """Keep an existing profile's email in step with the account email."""
    if created or not instance.email:
        return
    Profile.objects.filter(user=instance).exclude(email=instance.email).update(email=instance.email)


@receiver(post_delete, sender=Worker)
def delete_worker_documents(sender, instance, **kwargs):
    delete_many_quietly(instance.document_paths())


@receiver(post_delete, sender=Builder)
def delete_builder_documents(sender, instance, **kwargs):
    delete_many_quietly([instance.builder_coi_path, instance.sub_agreement_path])


@receiver(post_delete, sender=Job)
def delete_job_documents(sender, instance, **kwargs):
    delete_many_quietly([instance.project_coi_path])
