"""
Forms for user login and administration.
"""

from django import forms
from django.utils.translation import gettext_lazy as _

from apps.gateway.schemas import UserInput, UserRole


class LoginForm(forms.Form):
    """Form for user login."""

    email = forms.EmailField(
        widget=forms.EmailInput(attrs={
            'class': 'form-control',
            'placeholder': 'Email'
        })
    )
    password = forms.CharField(
        widget=forms.PasswordInput(attrs={
            'class': 'form-control',
            'placeholder': 'Password'
        })
    )

    def clean_email(self):
        return self.cleaned_data['email'].strip().lower()


class UserCreateForm(forms.Form):
    """Form for admins to register a new user with the backend."""

    name = forms.CharField(
        label=_('Name'),
        max_length=150,
        widget=forms.TextInput(attrs={'class': 'form-control', 'placeholder': 'Full name'})
    )
    email = forms.EmailField(
        label=_('Email'),
        widget=forms.EmailInput(attrs={'class': 'form-control', 'placeholder': 'Email address'})
    )
    password = forms.CharField(
        label=_('Password'),
        min_length=6,
        widget=forms.PasswordInput(attrs={'class': 'form-control', 'placeholder': 'Password'})
    )
    confirm_password = forms.CharField(
        label=_('Confirm Password'),
        widget=forms.PasswordInput(attrs={'class': 'form-control', 'placeholder': 'Confirm password'})
    )
    role = forms.ChoiceField(
        label=_('Role'),
        choices=[(role.value, role.value.title()) for role in UserRole],
        initial=UserRole.USER.value,
        widget=forms.Select(attrs={'class': 'form-control'})
    )

    def clean_email(self):
        return self.cleaned_data['email'].strip().lower()

    def clean(self):
        cleaned_data = super().clean()
        password = cleaned_data.get('password')
        confirm_password = cleaned_data.get('confirm_password')

        if password and confirm_password and password != confirm_password:
            raise forms.ValidationError(_("Passwords do not match."))

        return cleaned_data

    def to_input(self) -> UserInput:
        return UserInput(
            name=self.cleaned_data['name'],
            email=self.cleaned_data['email'],
            password=self.cleaned_data['password'],
            role=UserRole(self.cleaned_data['role']),
        )
